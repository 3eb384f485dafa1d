"""MapMotion service — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, queue, storage, cache, identity, location
and API layers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mapmotion.api.device import router as device_router
from mapmotion.api.monitoring import router as monitoring_router
from mapmotion.api.session import router as session_router
from mapmotion.cache.file_cache import JsonFileCache, MemoryCache
from mapmotion.config import AppConfig, load_config
from mapmotion.core.auth import AuthSessionController
from mapmotion.core.authorization import LocationAuthorizationNegotiator
from mapmotion.core.session import MapSession
from mapmotion.core.stats import TrackingStats
from mapmotion.core.sync import LocationSyncStore
from mapmotion.core.tracking import TrackingStateMachine
from mapmotion.identity.memory_provider import MemoryIdentityProvider
from mapmotion.location.bridge import BridgeLocationSubsystem
from mapmotion.queue.asyncio_queue import AsyncioFixQueue
from mapmotion.storage.file_storage import FileDocumentStore
from mapmotion.storage.memory_store import MemoryDocumentStore

log = structlog.get_logger()

# Seconds to let in-flight sample writes finish on shutdown.
SHUTDOWN_DRAIN_TIMEOUT_S = 5.0

# Module-level singletons (set during startup)
_session: MapSession | None = None
_bridge: BridgeLocationSubsystem | None = None
_stats: TrackingStats | None = None
_config: AppConfig | None = None


def get_session() -> MapSession:
    assert _session is not None, "Service not initialized"
    return _session


def get_bridge() -> BridgeLocationSubsystem:
    assert _bridge is not None, "Service not initialized"
    return _bridge


def get_stats() -> TrackingStats:
    assert _stats is not None, "Service not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Service not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=not config.logging.file))

    logger_factory = None
    if config.logging.file:
        logger_factory = structlog.WriteLoggerFactory(file=open(config.logging.file, "a"))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
        logger_factory=logger_factory or structlog.PrintLoggerFactory(),
    )


def build_session(
    config: AppConfig,
    stats: TrackingStats,
    subsystem: BridgeLocationSubsystem,
) -> tuple[MapSession, LocationSyncStore]:
    """Assemble the core components from configured adapters."""
    if config.storage.backend == "file":
        store = FileDocumentStore(base_dir=config.storage.base_dir)
    elif config.storage.backend == "memory":
        store = MemoryDocumentStore()
    else:
        raise ValueError(f"unknown storage backend: {config.storage.backend!r}")

    if config.cache.backend == "file":
        cache = JsonFileCache(config.cache.path)
    elif config.cache.backend == "memory":
        cache = MemoryCache()
    else:
        raise ValueError(f"unknown cache backend: {config.cache.backend!r}")

    if config.identity.backend != "memory":
        raise ValueError(f"unknown identity backend: {config.identity.backend!r}")
    provider = MemoryIdentityProvider()

    auth = AuthSessionController(provider=provider, store=store, cache=cache)
    sync = LocationSyncStore(store, stats=stats, tz=config.tracking.tz())
    tracker = TrackingStateMachine(
        subsystem,
        LocationAuthorizationNegotiator(subsystem),
        sync,
        AsyncioFixQueue(max_size=config.queue.max_size),
        auth.get_current_user,
        stats=stats,
    )
    return MapSession(auth, tracker), sync


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _session, _bridge, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("service_starting",
             env=_config.server.env,
             storage=_config.storage.backend,
             queue_max_size=_config.queue.max_size)

    _stats = TrackingStats()
    _bridge = BridgeLocationSubsystem()
    _session, sync = build_session(_config, _stats, _bridge)

    log.info("service_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    # Shutdown
    await _session.tracker.teardown()
    try:
        await asyncio.wait_for(sync.drain(), timeout=SHUTDOWN_DRAIN_TIMEOUT_S)
    except asyncio.TimeoutError:
        log.warning("sample_writes_abandoned", count=sync.cancel_pending())
    log.info("service_stopped")


app = FastAPI(
    title="MapMotion",
    description="Location tracking and daily path service",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(session_router)
app.include_router(device_router)
app.include_router(monitoring_router)
