"""Local key-value cache interface (port)."""

from __future__ import annotations

from typing import Any, Protocol


class LocalCache(Protocol):
    """Port: device-local storage of JSON-compatible values."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...
