"""Tests for LocationSampleFilter."""

from __future__ import annotations

import pytest

from mapmotion.core.errors import UnknownError
from mapmotion.core.sample_filter import MAX_ACCURACY_M, FilterResult, LocationSampleFilter


@pytest.mark.parametrize("accuracy", [20.01, 21.0, 35.5, 100.0, 5000.0])
@pytest.mark.parametrize("identity_id", [None, "user-1"])
def test_inaccurate_fix_never_becomes_sample(fix_factory, accuracy, identity_id):
    sample_filter = LocationSampleFilter()
    assert sample_filter.accept(fix_factory(accuracy_m=accuracy), identity_id) is None


@pytest.mark.parametrize("accuracy", [0.0, 3.2, 10.0, 19.99, MAX_ACCURACY_M])
def test_accurate_fix_with_identity_always_becomes_sample(fix_factory, accuracy):
    sample_filter = LocationSampleFilter()
    fix = fix_factory(accuracy_m=accuracy)

    sample = sample_filter.accept(fix, "user-1")

    assert sample is not None
    assert sample.user_id == "user-1"
    assert sample.latitude == fix.latitude
    assert sample.longitude == fix.longitude
    assert sample.timestamp == fix.timestamp
    assert sample.accuracy_m == accuracy


def test_accurate_fix_without_identity_is_dropped(fix_factory):
    assert LocationSampleFilter().accept(fix_factory(accuracy_m=5.0), None) is None


def test_last_known_updates_even_for_dropped_fixes(fix_factory):
    sample_filter = LocationSampleFilter()
    noisy = fix_factory(accuracy_m=80.0)
    sample_filter.accept(noisy, "user-1")
    assert sample_filter.last_known == noisy


def test_samples_get_unique_ids(fix_factory):
    sample_filter = LocationSampleFilter()
    fix = fix_factory()
    ids = {sample_filter.accept(fix, "user-1").id for _ in range(50)}
    assert len(ids) == 50


@pytest.mark.asyncio
async def test_stream_continues_after_delivery_error(fix_factory):
    first, second = fix_factory(accuracy_m=5.0), fix_factory(accuracy_m=50.0)

    async def events():
        yield first
        yield RuntimeError("gps glitch")
        yield second

    sample_filter = LocationSampleFilter()
    results = [r async for r in sample_filter.stream(events(), lambda: "user-1")]

    assert len(results) == 3
    assert isinstance(results[0], FilterResult) and results[0].sample is not None
    assert isinstance(results[1], UnknownError)
    assert isinstance(results[2], FilterResult) and results[2].sample is None
    assert sample_filter.last_known == second


@pytest.mark.asyncio
async def test_stream_reads_identity_per_fix(fix_factory):
    identities = iter([None, "user-1"])

    async def events():
        yield fix_factory()
        yield fix_factory()

    results = [r async for r in LocationSampleFilter().stream(events(), lambda: next(identities))]

    assert results[0].sample is None
    assert results[1].sample is not None
