"""Liveness, pipeline counters and device-facing tracking parameters."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from fastapi import APIRouter

from mapmotion.core.authorization import INITIAL_WAIT_S, MIN_DISPLACEMENT_M, SECOND_WAIT_S
from mapmotion.core.sample_filter import MAX_ACCURACY_M

router = APIRouter(prefix="/api/v1")


def _directory_status(directory: Path) -> tuple[bool, float | None]:
    """Whether ``directory`` (or its nearest existing parent) is writable, and GB free there."""
    probe = directory
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    try:
        free = shutil.disk_usage(probe).free
    except OSError:
        return False, None
    return os.access(probe, os.W_OK), round(free / (1024 ** 3), 1)


@router.get("/health")
async def health() -> dict:
    from mapmotion.main import get_config, get_session, get_stats

    config = get_config()
    counters = get_stats().snapshot()

    body = {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": counters["uptime_seconds"],
        "tracking_state": get_session().tracker.state.value,
        "queue_depth": counters["queue_depth"],
        "storage_backend": config.storage.backend,
        "storage_writable": True,
        "disk_free_gb": None,
    }
    if config.storage.backend == "file":
        writable, free_gb = _directory_status(Path(config.storage.base_dir))
        body["storage_writable"] = writable
        body["disk_free_gb"] = free_gb
        if not writable:
            body["status"] = "degraded"
    return body


@router.get("/stats")
async def pipeline_stats() -> dict:
    """Fix pipeline counters: received, accepted, dropped, overflowed, persisted."""
    from mapmotion.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def tracking_parameters() -> dict:
    """Parameters the device applies to its location subscription."""
    return {
        "min_distance_m": MIN_DISPLACEMENT_M,
        "max_accuracy_m": MAX_ACCURACY_M,
        "authorization_wait_s": [INITIAL_WAIT_S, SECOND_WAIT_S],
    }
