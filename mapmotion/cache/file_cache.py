"""Local cache implementations.

``JsonFileCache`` survives process restarts by keeping every key in one
JSON file; ``MemoryCache`` is the throwaway variant for tests and dev.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger()


class MemoryCache:
    """LocalCache backed by a dict."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._values.get(key))

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)


class JsonFileCache:
    """LocalCache persisted to a single JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._values: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                values = json.load(f)
        except (json.JSONDecodeError, OSError):
            log.warning("cache_unreadable", path=str(self._path), exc_info=True)
            return {}
        return values if isinstance(values, dict) else {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._values.get(key))

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(self._values, f)
        os.replace(tmp_path, self._path)
