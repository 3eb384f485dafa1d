"""Tests for the MapSession façade."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mapmotion.core.errors import (
    CredentialsValidationError,
    InvalidCredentialsError,
    UnknownError,
)
from mapmotion.core.models import LocationSample, TrackingState
from mapmotion.core.session import MapSession
from mapmotion.storage.memory_store import MemoryDocumentStore

DAY = datetime(2024, 6, 16, 10, 0, tzinfo=timezone.utc)


class QueryFailingStore(MemoryDocumentStore):
    async def query_range(self, collection, query):
        raise TimeoutError("backend unavailable")


@pytest.fixture
def session(auth, tracker):
    return MapSession(auth, tracker)


@pytest.mark.asyncio
async def test_sign_in_validates_before_calling_provider(session):
    with pytest.raises(CredentialsValidationError):
        await session.sign_in("", "secret1")

    assert session.describe()["last_error"]["kind"] == "validation"
    assert session.auth.get_current_user() is None


@pytest.mark.asyncio
async def test_wrong_password_surfaces_as_last_error(session):
    with pytest.raises(InvalidCredentialsError):
        await session.sign_in("a@b.com", "wrong-pass")

    error = session.describe()["last_error"]
    assert error == {"kind": "invalid_credentials", "message": "Invalid email or password"}


@pytest.mark.asyncio
async def test_sign_up_then_describe(session):
    identity = await session.sign_up("new@b.com", "secret2")

    view = session.describe()
    assert view["user"] == {"id": identity.id, "email": "new@b.com"}
    assert view["state"] == "idle"
    assert view["tracking"] is False
    assert session.previous_logins() == ["new@b.com"]


@pytest.mark.asyncio
async def test_toggle_tracking_starts_and_stops(session):
    started = await session.toggle_tracking()
    assert started.state is TrackingState.TRACKING

    stopped = await session.toggle_tracking()
    assert stopped.state is TrackingState.STOPPED

    restarted = await session.toggle_tracking()
    assert restarted.state is TrackingState.TRACKING


@pytest.mark.asyncio
async def test_toggle_path_display_loads_todays_path(session, sync, fix_factory):
    identity = await session.sign_in("a@b.com", "secret1")
    await sync.persist(LocationSample.create(identity.id, fix_factory(ts=DAY)))

    shown = await session.toggle_path_display(DAY)
    assert shown.show_path is True
    assert len(shown.today_path) == 1

    hidden = await session.toggle_path_display(DAY)
    assert hidden.show_path is False
    assert hidden.today_path == []
    assert session.describe()["today_path"] == []


@pytest.mark.asyncio
async def test_failed_path_load_keeps_display_on(provider, bridge, stats):
    from mapmotion.cache.file_cache import MemoryCache
    from mapmotion.core.auth import AuthSessionController
    from mapmotion.core.authorization import LocationAuthorizationNegotiator
    from mapmotion.core.sync import LocationSyncStore
    from mapmotion.core.tracking import TrackingStateMachine
    from mapmotion.queue.asyncio_queue import AsyncioFixQueue

    store = QueryFailingStore()
    auth = AuthSessionController(provider=provider, store=store, cache=MemoryCache())
    tracker = TrackingStateMachine(
        bridge,
        LocationAuthorizationNegotiator(bridge),
        LocationSyncStore(store, stats=stats),
        AsyncioFixQueue(),
        auth.get_current_user,
        stats=stats,
    )
    session = MapSession(auth, tracker)
    await session.sign_in("a@b.com", "secret1")

    shown = await session.toggle_path_display(DAY)

    assert shown.show_path is True
    assert shown.today_path == []
    assert isinstance(shown.last_error, UnknownError)


@pytest.mark.asyncio
async def test_sign_out_tears_down_tracking(session):
    await session.sign_in("a@b.com", "secret1")
    await session.toggle_tracking()
    await session.toggle_path_display(DAY)

    await session.sign_out()

    view = session.describe()
    assert view["user"] is None
    assert view["state"] == "stopped"
    assert view["tracking"] is False
    assert view["show_path"] is False


@pytest.mark.asyncio
async def test_describe_reports_current_location(session, bridge, stats, settle, fix_factory):
    await session.toggle_tracking()
    bridge.deliver_fix(fix_factory(accuracy_m=50.0, lat=45.5, lon=-73.6, ts=DAY))
    await settle(lambda: stats.fixes_received == 1)

    location = session.describe()["current_location"]
    assert location["latitude"] == 45.5
    assert location["longitude"] == -73.6
    assert location["accuracy_m"] == 50.0
