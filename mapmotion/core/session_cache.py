"""Single-owner store for the cached identity and the login history.

Only AuthSessionController holds a SessionCache. Every read returns a copy,
so callers elsewhere only ever see snapshots.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from mapmotion.core.models import Identity

if TYPE_CHECKING:
    from mapmotion.cache.base import LocalCache

CURRENT_USER_KEY = "current_user"
PREVIOUS_LOGINS_KEY = "previous_logins"


class SessionCache:
    """Lock-guarded view of the local cache keys owned by the auth layer."""

    def __init__(self, cache: LocalCache) -> None:
        self._cache = cache
        self._lock = threading.Lock()

    def get_identity(self) -> Identity | None:
        with self._lock:
            blob = self._cache.get(CURRENT_USER_KEY)
        if not blob:
            return None
        return Identity.from_dict(blob)

    def set_identity(self, identity: Identity) -> None:
        """Overwrite the cached identity. At most one is kept."""
        with self._lock:
            self._cache.set(CURRENT_USER_KEY, identity.to_dict())

    def login_history(self) -> list[str]:
        with self._lock:
            return list(self._cache.get(PREVIOUS_LOGINS_KEY) or [])

    def add_login(self, email: str) -> bool:
        """Append ``email`` if not yet present. Returns True if it was added."""
        with self._lock:
            history = list(self._cache.get(PREVIOUS_LOGINS_KEY) or [])
            if email in history:
                return False
            history.append(email)
            self._cache.set(PREVIOUS_LOGINS_KEY, history)
            return True
