"""Document store interface (port) for profile and location documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


class DocumentNotFoundError(KeyError):
    """Raised by ``update`` when the target document does not exist."""


@dataclass(frozen=True)
class RangeQuery:
    """``where field == value and start <= range_field < end order by range_field``."""

    field: str
    value: Any
    range_field: str
    start: Any
    end: Any

    def matches(self, data: dict) -> bool:
        if data.get(self.field) != self.value:
            return False
        key = data.get(self.range_field)
        return key is not None and self.start <= key < self.end


class DocumentStore(Protocol):
    """Port: key-value documents grouped in collections, with range queries."""

    async def get(self, collection: str, doc_id: str) -> dict | None: ...

    async def set(self, collection: str, doc_id: str, data: dict) -> None: ...

    async def update(self, collection: str, doc_id: str, fields: dict) -> None: ...

    async def query_range(self, collection: str, query: RangeQuery) -> list[tuple[str, dict]]: ...
