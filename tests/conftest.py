"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

import mapmotion.main as main_module
from mapmotion.cache.file_cache import MemoryCache
from mapmotion.config import AppConfig
from mapmotion.core.auth import AuthSessionController
from mapmotion.core.authorization import LocationAuthorizationNegotiator
from mapmotion.core.models import AuthorizationState, RawFix
from mapmotion.core.stats import TrackingStats
from mapmotion.core.sync import LocationSyncStore
from mapmotion.core.tracking import TrackingStateMachine
from mapmotion.identity.memory_provider import MemoryIdentityProvider
from mapmotion.location.bridge import BridgeLocationSubsystem
from mapmotion.queue.asyncio_queue import AsyncioFixQueue
from mapmotion.storage.memory_store import MemoryDocumentStore


@pytest.fixture(autouse=True)
def _init_service(tmp_path):
    """Initialize service singletons for every test, using a temp directory."""
    config = AppConfig()
    config.storage.backend = "memory"
    config.cache.path = str(tmp_path / "local_cache.json")
    config.logging.level = "warning"

    stats = TrackingStats()
    bridge = BridgeLocationSubsystem()
    session, _sync = main_module.build_session(config, stats, bridge)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._bridge = bridge
    main_module._session = session

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._bridge = None
    main_module._session = None


@pytest.fixture
async def client():
    from mapmotion.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await main_module.get_session().tracker.teardown()


@pytest.fixture
def settle():
    """Return a coroutine that yields to the loop until ``predicate()`` holds."""

    async def _settle(predicate=lambda: True, timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            await asyncio.sleep(0.01)
            if predicate():
                return
            if loop.time() > deadline:
                raise AssertionError("condition not reached in time")

    return _settle


def make_fix(accuracy_m: float = 5.0, lat: float = 48.8566, lon: float = 2.3522,
             ts: datetime | None = None) -> RawFix:
    return RawFix(
        latitude=lat,
        longitude=lon,
        timestamp=ts or datetime.now(timezone.utc),
        accuracy_m=accuracy_m,
    )


@pytest.fixture
def fix_factory():
    return make_fix


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def provider():
    return MemoryIdentityProvider(accounts={"a@b.com": "secret1"})


@pytest.fixture
def auth(provider, store):
    return AuthSessionController(provider=provider, store=store, cache=MemoryCache())


@pytest.fixture
def stats():
    return TrackingStats()


@pytest.fixture
def bridge():
    return BridgeLocationSubsystem(authorization=AuthorizationState.GRANTED)


@pytest.fixture
def sync(store, stats):
    return LocationSyncStore(store, stats=stats, tz=timezone.utc)


@pytest.fixture
async def tracker(bridge, sync, auth, stats):
    machine = TrackingStateMachine(
        bridge,
        LocationAuthorizationNegotiator(bridge, initial_wait=0.05, second_wait=0.1),
        sync,
        AsyncioFixQueue(max_size=100),
        auth.get_current_user,
        stats=stats,
    )
    yield machine
    await machine.teardown()
    await sync.drain()
