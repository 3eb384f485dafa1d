"""Identity provider interface (port) for email + password accounts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ProviderError(Exception):
    """Raised by identity providers. ``code`` is the provider's error code."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        super().__init__(message or code)


@dataclass(frozen=True)
class ProviderAccount:
    uid: str
    email: str | None = None


class IdentityProvider(Protocol):
    """Port: authenticates users and exposes the active session."""

    async def sign_in(self, email: str, password: str) -> ProviderAccount: ...

    async def create_account(self, email: str, password: str) -> ProviderAccount: ...

    async def sign_out(self) -> None: ...

    def current_account(self) -> ProviderAccount | None: ...
