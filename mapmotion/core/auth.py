"""Authentication session controller.

Owns sign-in, sign-up and sign-out against the identity provider, plus the
bookkeeping that follows a successful provider call: the local identity
cache, the remote ``users/{id}`` profile document, and the login history.

Bookkeeping is best-effort rather than transactional. If the provider call
succeeds and a later step fails, the call raises ``UnknownError`` and the
provider session stays valid; nothing is rolled back.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from mapmotion.core.errors import (
    CredentialsValidationError,
    UnknownError,
    map_provider_error,
)
from mapmotion.core.models import Identity, to_epoch_ms, utc_now
from mapmotion.core.session_cache import SessionCache
from mapmotion.identity.base import ProviderError

if TYPE_CHECKING:
    from mapmotion.cache.base import LocalCache
    from mapmotion.identity.base import IdentityProvider, ProviderAccount
    from mapmotion.storage.base import DocumentStore

log = structlog.get_logger()

USERS_COLLECTION = "users"
MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}$")


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def validate_password(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH


def check_credentials(email: str, password: str) -> None:
    """Reject obviously unusable credentials before calling the provider."""
    if not email or not password:
        raise CredentialsValidationError()
    if not validate_email(email):
        raise CredentialsValidationError("Please enter a valid email address")
    if not validate_password(password):
        raise CredentialsValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )


class AuthSessionController:
    """Sign-in state plus the cached identity and login history it owns."""

    def __init__(
        self,
        provider: IdentityProvider,
        store: DocumentStore,
        cache: LocalCache,
    ) -> None:
        self._provider = provider
        self._store = store
        self._session_cache = SessionCache(cache)

    async def sign_in(self, email: str, password: str) -> Identity:
        """Authenticate and reconcile the profile document.

        Raises InvalidCredentialsError, UserNotFoundError or UnknownError.
        """
        account = await self._call_provider(self._provider.sign_in, email, password)
        identity = self._identity_for(account, email)
        await self._record_login(identity, create_profile=False)
        log.info("signed_in", user=identity.id)
        return identity

    async def sign_up(self, email: str, password: str) -> Identity:
        """Create a provider account and its profile document.

        Raises EmailAlreadyInUseError, InvalidCredentialsError or UnknownError.
        """
        account = await self._call_provider(self._provider.create_account, email, password)
        identity = self._identity_for(account, email)
        await self._record_login(identity, create_profile=True)
        log.info("signed_up", user=identity.id)
        return identity

    async def sign_out(self) -> None:
        """Invalidate the provider session. Cache and history are kept."""
        try:
            await self._provider.sign_out()
        except Exception as exc:
            log.error("sign_out_failed", exc_info=True)
            raise UnknownError(exc) from exc
        log.info("signed_out")

    def get_current_user(self) -> Identity | None:
        """Read the provider's active session.

        The returned last-login is stamped now, not read from the cache.
        """
        account = self._provider.current_account()
        if account is None:
            return None
        return Identity(id=account.uid, email=account.email or "", last_login=utc_now())

    def get_previous_logins(self) -> list[str]:
        return self._session_cache.login_history()

    def cached_identity(self) -> Identity | None:
        return self._session_cache.get_identity()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call_provider(self, method, email: str, password: str) -> ProviderAccount:
        try:
            return await method(email, password)
        except ProviderError as exc:
            error = map_provider_error(exc)
            log.warning("provider_rejected", code=exc.code, kind=error.kind)
            raise error from exc
        except Exception as exc:
            log.error("provider_call_failed", exc_info=True)
            raise UnknownError(exc) from exc

    @staticmethod
    def _identity_for(account: ProviderAccount, email: str) -> Identity:
        return Identity(id=account.uid, email=email, last_login=utc_now())

    async def _record_login(self, identity: Identity, *, create_profile: bool) -> None:
        """Cache locally, reconcile the profile and extend the history.

        Any failure here is reported as UnknownError; earlier steps stay done.
        """
        try:
            self._session_cache.set_identity(identity)
            if create_profile:
                await self._create_profile(identity)
            else:
                await self._reconcile_profile(identity)
            if self._session_cache.add_login(identity.email):
                log.debug("login_history_extended", email=identity.email)
        except Exception as exc:
            log.error("login_bookkeeping_failed", user=identity.id, exc_info=True)
            raise UnknownError(exc) from exc

    async def _reconcile_profile(self, identity: Identity) -> None:
        existing = await self._store.get(USERS_COLLECTION, identity.id)
        if existing is not None:
            await self._store.update(
                USERS_COLLECTION,
                identity.id,
                {"last_login_date": to_epoch_ms(identity.last_login)},
            )
        else:
            await self._create_profile(identity)

    async def _create_profile(self, identity: Identity) -> None:
        await self._store.set(
            USERS_COLLECTION,
            identity.id,
            {
                "email": identity.email,
                "last_login_date": to_epoch_ms(identity.last_login),
            },
        )
