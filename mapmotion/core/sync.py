"""Location sync — persists samples and reconstructs a day's path.

Persistence from the tracking pipeline is fire-and-forget: each accepted
sample becomes one write task, failures are logged and counted, nothing is
retried (at-most-once). Path queries always hit the store; there is no
cache.

This module depends on the DocumentStore protocol, not a concrete store.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import TYPE_CHECKING

import structlog

from mapmotion.core.errors import UnknownError
from mapmotion.core.models import LocationSample, to_epoch_ms
from mapmotion.storage.base import RangeQuery

if TYPE_CHECKING:
    from mapmotion.core.stats import TrackingStats
    from mapmotion.storage.base import DocumentStore

log = structlog.get_logger()

LOCATIONS_COLLECTION = "locations"


def day_window(reference: datetime, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return ``[start of day, start of next day)`` around ``reference``.

    The day is taken in ``tz``, or in the system local zone when ``tz`` is
    None. Both bounds are aware datetimes.
    """
    if tz is None:
        local_date = reference.astimezone().date()
        start = datetime.combine(local_date, time.min).astimezone()
        end = datetime.combine(local_date + timedelta(days=1), time.min).astimezone()
    else:
        local_date = reference.astimezone(tz).date()
        start = datetime.combine(local_date, time.min, tzinfo=tz)
        end = datetime.combine(local_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


class LocationSyncStore:
    """Writes samples to ``locations/{id}`` and answers daily path queries."""

    def __init__(
        self,
        store: DocumentStore,
        stats: TrackingStats | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._stats = stats
        self._tz = tz
        self._pending: set[asyncio.Task] = set()

    async def persist(self, sample: LocationSample) -> None:
        try:
            await self._store.set(LOCATIONS_COLLECTION, sample.id, sample.to_document())
        except Exception as exc:
            raise UnknownError(exc) from exc

    def submit(self, sample: LocationSample) -> asyncio.Task:
        """Persist in the background. Failures are logged, never raised."""
        task = asyncio.get_running_loop().create_task(self._persist_best_effort(sample))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Abandon in-flight writes. Returns how many were cancelled."""
        cancelled = 0
        for task in list(self._pending):
            if task.cancel():
                cancelled += 1
        return cancelled

    async def query_daily_path(
        self,
        identity_id: str,
        reference: datetime,
    ) -> list[LocationSample]:
        """Samples of ``identity_id`` within the local day of ``reference``, oldest first.

        A naive ``reference`` is read as UTC, matching how timestamps are stored.
        """
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        start, end = day_window(reference, self._tz)
        query = RangeQuery(
            field="user_id",
            value=identity_id,
            range_field="timestamp",
            start=to_epoch_ms(start),
            end=to_epoch_ms(end),
        )
        try:
            rows = await self._store.query_range(LOCATIONS_COLLECTION, query)
            samples = [LocationSample.from_document(doc_id, data) for doc_id, data in rows]
        except Exception as exc:
            log.error("path_query_failed", user=identity_id, exc_info=True)
            raise UnknownError(exc) from exc

        samples.sort(key=lambda s: s.timestamp)
        log.debug("path_loaded", user=identity_id, count=len(samples),
                  day=start.date().isoformat())
        return samples

    async def _persist_best_effort(self, sample: LocationSample) -> None:
        try:
            await self.persist(sample)
        except UnknownError:
            log.error("sample_write_failed", sample_id=sample.id,
                      user=sample.user_id, exc_info=True)
            if self._stats is not None:
                self._stats.record_persist_error()
            return
        if self._stats is not None:
            self._stats.record_persisted()
        log.debug("sample_stored", sample_id=sample.id, user=sample.user_id)
