"""In-process identity provider.

Keeps accounts in a dict and reports failures with the same error codes a
hosted email/password provider uses, so the mapping in
``mapmotion.core.errors`` is exercised end to end.
"""

from __future__ import annotations

import uuid

import structlog

from mapmotion.core.auth import validate_email, validate_password
from mapmotion.identity.base import ProviderAccount, ProviderError

log = structlog.get_logger()


class MemoryIdentityProvider:
    """IdentityProvider backed by a dict of email -> (uid, password)."""

    def __init__(self, accounts: dict[str, str] | None = None) -> None:
        self._accounts: dict[str, tuple[str, str]] = {}
        self._current: ProviderAccount | None = None
        for email, password in (accounts or {}).items():
            self._accounts[email] = (str(uuid.uuid4()), password)

    async def sign_in(self, email: str, password: str) -> ProviderAccount:
        if not validate_email(email):
            raise ProviderError("invalid-email")
        entry = self._accounts.get(email)
        if entry is None:
            raise ProviderError("user-not-found")
        uid, expected = entry
        if password != expected:
            raise ProviderError("wrong-password")
        self._current = ProviderAccount(uid=uid, email=email)
        log.debug("provider_sign_in", uid=uid)
        return self._current

    async def create_account(self, email: str, password: str) -> ProviderAccount:
        if not validate_email(email):
            raise ProviderError("invalid-email")
        if email in self._accounts:
            raise ProviderError("email-already-in-use")
        if not validate_password(password):
            raise ProviderError("weak-password")
        uid = str(uuid.uuid4())
        self._accounts[email] = (uid, password)
        self._current = ProviderAccount(uid=uid, email=email)
        log.debug("provider_account_created", uid=uid)
        return self._current

    async def sign_out(self) -> None:
        self._current = None

    def current_account(self) -> ProviderAccount | None:
        return self._current
