"""File-based DocumentStore implementation.

Stores one JSON file per document:

    base_dir/<collection>/<doc_id>.json

Writes go to a temporary file first and are renamed into place, so a
reader never sees a half-written document.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog

from mapmotion.storage.base import DocumentNotFoundError, RangeQuery

log = structlog.get_logger()


class FileDocumentStore:
    """DocumentStore backed by per-document JSON files on disk."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _collection_dir(self, collection: str) -> Path:
        path = self._base_dir / collection
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _doc_path(self, collection: str, doc_id: str) -> Path:
        if "/" in doc_id or doc_id in ("", ".", ".."):
            raise ValueError(f"invalid document id: {doc_id!r}")
        return self._collection_dir(collection) / f"{doc_id}.json"

    def _write(self, path: Path, data: dict) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, separators=(",", ":"))
        os.replace(tmp_path, path)

    async def get(self, collection: str, doc_id: str) -> dict | None:
        path = self._doc_path(collection, doc_id)
        if not path.exists():
            return None
        with open(path) as f:
            return json.load(f)

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        path = self._doc_path(collection, doc_id)
        self._write(path, data)
        log.debug("document_written", collection=collection, doc_id=doc_id)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        path = self._doc_path(collection, doc_id)
        if not path.exists():
            raise DocumentNotFoundError(f"{collection}/{doc_id}")
        with open(path) as f:
            data = json.load(f)
        data.update(fields)
        self._write(path, data)
        log.debug("document_updated", collection=collection, doc_id=doc_id)

    async def query_range(self, collection: str, query: RangeQuery) -> list[tuple[str, dict]]:
        """Scan the collection directory and return matches ordered by the range field."""
        matches: list[tuple[str, dict]] = []
        for path in sorted(self._collection_dir(collection).glob("*.json")):
            try:
                with open(path) as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError):
                log.warning("document_unreadable", path=str(path), exc_info=True)
                continue
            if query.matches(data):
                matches.append((path.stem, data))
        matches.sort(key=lambda item: item[1][query.range_field])
        return matches
