"""Error taxonomy shared by the auth and location components.

Provider, store and OS errors are caught at the component boundary and
converted into one of these. Anything that does not have a dedicated kind
is wrapped in ``UnknownError`` with the original exception as its cause.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mapmotion.identity.base import ProviderError


class MapMotionError(Exception):
    """Base class for every error surfaced to the session layer."""

    kind = "unknown"
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class AuthError(MapMotionError):
    """Failures of sign-in, sign-up and sign-out."""


class InvalidCredentialsError(AuthError):
    kind = "invalid_credentials"
    message = "Invalid email or password"


class UserNotFoundError(AuthError):
    kind = "user_not_found"
    message = "User not found"


class EmailAlreadyInUseError(AuthError):
    kind = "email_already_in_use"
    message = "Email is already in use"


class CredentialsValidationError(AuthError):
    """Credentials rejected locally before reaching the identity provider."""

    kind = "validation"
    message = "Please enter both email and password"


class LocationError(MapMotionError):
    """Failures of authorization negotiation and location delivery."""


class ServicesDisabledError(LocationError):
    kind = "services_disabled"
    message = "Location services are disabled"


class AuthorizationDeniedError(LocationError):
    kind = "authorization_denied"
    message = "Location access was denied"


class UnknownError(MapMotionError):
    """Wraps an underlying error that has no dedicated kind."""

    kind = "unknown"

    def __init__(self, cause: BaseException | None = None, message: str | None = None) -> None:
        self.cause = cause
        if message is None and cause is not None:
            message = str(cause) or type(cause).__name__
        super().__init__(message)


# Provider error code -> taxonomy class.
_PROVIDER_CODES: dict[str, type[AuthError]] = {
    "wrong-password": InvalidCredentialsError,
    "invalid-email": InvalidCredentialsError,
    "invalid-credential": InvalidCredentialsError,
    "weak-password": InvalidCredentialsError,
    "user-not-found": UserNotFoundError,
    "email-already-in-use": EmailAlreadyInUseError,
}


def map_provider_error(exc: ProviderError) -> MapMotionError:
    """Map an identity-provider error onto exactly one taxonomy error."""
    error_cls = _PROVIDER_CODES.get(exc.code)
    if error_cls is None:
        return UnknownError(exc)
    return error_cls()


def wrap_unknown(exc: BaseException) -> MapMotionError:
    """Pass taxonomy errors through, wrap everything else in UnknownError."""
    if isinstance(exc, MapMotionError):
        return exc
    return UnknownError(exc)
