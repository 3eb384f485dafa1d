"""Tests for LocationSyncStore: persistence and the daily path window."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from mapmotion.core.errors import UnknownError
from mapmotion.core.models import LocationSample
from mapmotion.core.stats import TrackingStats
from mapmotion.core.sync import LocationSyncStore, day_window
from mapmotion.storage.file_storage import FileDocumentStore
from mapmotion.storage.memory_store import MemoryDocumentStore

PARIS = ZoneInfo("Europe/Paris")


def _sample(user_id: str, ts: datetime, sample_id: str | None = None) -> LocationSample:
    return LocationSample(
        id=sample_id or f"s-{ts.timestamp():.0f}-{user_id}",
        user_id=user_id,
        latitude=48.85,
        longitude=2.35,
        timestamp=ts,
        accuracy_m=8.0,
    )


class FailingStore(MemoryDocumentStore):
    async def set(self, collection, doc_id, data):
        raise ConnectionError("write rejected")

    async def query_range(self, collection, query):
        raise ConnectionError("read rejected")


def test_day_window_in_zone():
    reference = datetime(2024, 6, 15, 22, 30, tzinfo=timezone.utc)  # 00:30 next day in Paris
    start, end = day_window(reference, PARIS)
    assert start == datetime(2024, 6, 16, 0, 0, tzinfo=PARIS)
    assert end == datetime(2024, 6, 17, 0, 0, tzinfo=PARIS)


def test_day_window_spans_dst_change():
    start, end = day_window(datetime(2024, 3, 31, 12, 0, tzinfo=PARIS), PARIS)
    assert end.astimezone(timezone.utc) - start.astimezone(timezone.utc) == timedelta(hours=23)


def test_day_window_system_local_is_aware():
    start, end = day_window(datetime.now(timezone.utc))
    assert start.tzinfo is not None
    assert start <= datetime.now(timezone.utc) < end


@pytest.mark.asyncio
async def test_daily_path_only_contains_that_day_in_order():
    store = MemoryDocumentStore()
    sync = LocationSyncStore(store, tz=PARIS)
    day_start = datetime(2024, 6, 16, 0, 0, tzinfo=PARIS)
    day_end = day_start + timedelta(days=1)

    candidates = [
        day_start - timedelta(milliseconds=1),
        day_start,
        day_start + timedelta(hours=8, minutes=3),
        day_start + timedelta(hours=13),
        day_end - timedelta(milliseconds=1),
        day_end,
        day_end + timedelta(hours=2),
    ]
    shuffled = candidates[:]
    random.Random(7).shuffle(shuffled)
    for i, ts in enumerate(shuffled):
        await sync.persist(_sample("user-1", ts, sample_id=f"s{i}"))
    await sync.persist(_sample("user-2", day_start + timedelta(hours=9), sample_id="other"))

    path = await sync.query_daily_path("user-1", day_start + timedelta(hours=12))

    timestamps = [s.timestamp for s in path]
    assert timestamps == sorted(timestamps)
    assert len(path) == 4
    assert all(day_start <= ts < day_end for ts in timestamps)
    assert all(s.user_id == "user-1" for s in path)


@pytest.mark.asyncio
async def test_persist_writes_location_document(store):
    sync = LocationSyncStore(store)
    ts = datetime(2024, 6, 16, 8, 0, tzinfo=timezone.utc)
    await sync.persist(_sample("user-1", ts, sample_id="abc"))

    doc = await store.get("locations", "abc")
    assert doc == {
        "user_id": "user-1",
        "latitude": 48.85,
        "longitude": 2.35,
        "timestamp": int(ts.timestamp() * 1000),
        "accuracy": 8.0,
    }


@pytest.mark.asyncio
async def test_persist_failure_is_unknown():
    sync = LocationSyncStore(FailingStore())
    with pytest.raises(UnknownError):
        await sync.persist(_sample("user-1", datetime.now(timezone.utc)))


@pytest.mark.asyncio
async def test_submit_is_best_effort():
    stats = TrackingStats()
    sync = LocationSyncStore(FailingStore(), stats=stats)

    task = sync.submit(_sample("user-1", datetime.now(timezone.utc)))
    await task
    await asyncio.sleep(0)

    assert task.exception() is None
    assert stats.persist_errors == 1
    assert stats.samples_persisted == 0
    assert sync.pending == 0


@pytest.mark.asyncio
async def test_submit_and_drain(store, stats):
    sync = LocationSyncStore(store, stats=stats)
    now = datetime.now(timezone.utc)
    for i in range(5):
        sync.submit(_sample("user-1", now + timedelta(seconds=i), sample_id=f"s{i}"))

    await sync.drain()

    assert store.count("locations") == 5
    assert stats.samples_persisted == 5


@pytest.mark.asyncio
async def test_query_failure_is_unknown():
    sync = LocationSyncStore(FailingStore())
    with pytest.raises(UnknownError):
        await sync.query_daily_path("user-1", datetime.now(timezone.utc))


@pytest.mark.asyncio
async def test_daily_path_through_file_store(tmp_path):
    sync = LocationSyncStore(FileDocumentStore(tmp_path / "docs"), tz=timezone.utc)
    base = datetime(2024, 6, 16, 6, 0, tzinfo=timezone.utc)
    await sync.persist(_sample("user-1", base + timedelta(hours=2), sample_id="late"))
    await sync.persist(_sample("user-1", base, sample_id="early"))
    await sync.persist(_sample("user-1", base - timedelta(days=1), sample_id="yesterday"))

    path = await sync.query_daily_path("user-1", base)

    assert [s.id for s in path] == ["early", "late"]


@pytest.mark.asyncio
async def test_naive_reference_is_read_as_utc():
    sync = LocationSyncStore(MemoryDocumentStore(), tz=PARIS)
    # 22:45 UTC is 00:45 the next day in Paris; 21:00 UTC is still the 16th there.
    await sync.persist(_sample("user-1", datetime(2024, 6, 16, 22, 45, tzinfo=timezone.utc), "next"))
    await sync.persist(_sample("user-1", datetime(2024, 6, 16, 21, 0, tzinfo=timezone.utc), "same"))

    naive = await sync.query_daily_path("user-1", datetime(2024, 6, 16, 22, 30))
    aware = await sync.query_daily_path("user-1", datetime(2024, 6, 16, 22, 30, tzinfo=timezone.utc))

    assert [s.id for s in naive] == ["next"]
    assert [s.id for s in aware] == ["next"]
