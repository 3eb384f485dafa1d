"""In-process dict implementation of DocumentStore."""

from __future__ import annotations

import copy

from mapmotion.storage.base import DocumentNotFoundError, RangeQuery


class MemoryDocumentStore:
    """DocumentStore backed by nested dicts. Zero dependencies.

    No method awaits between reading and returning, so every call sees a
    consistent snapshot of the event loop's state.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}

    async def get(self, collection: str, doc_id: str) -> dict | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise DocumentNotFoundError(f"{collection}/{doc_id}")
        docs[doc_id].update(copy.deepcopy(fields))

    async def query_range(self, collection: str, query: RangeQuery) -> list[tuple[str, dict]]:
        matches = [
            (doc_id, copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if query.matches(data)
        ]
        matches.sort(key=lambda item: item[1][query.range_field])
        return matches

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))
