"""Outbound session events.

The tracking state machine publishes every observable change on one
EventChannel. Observers subscribe and read from their own queue, so a
slow observer never blocks fix delivery.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Union, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from mapmotion.core.errors import MapMotionError
    from mapmotion.core.models import RawFix, TrackingState

log = structlog.get_logger()


@dataclass(frozen=True)
class StateChanged:
    state: TrackingState


@dataclass(frozen=True)
class LocationUpdated:
    fix: RawFix


@dataclass(frozen=True)
class ErrorRaised:
    error: MapMotionError


SessionEvent = Union[StateChanged, LocationUpdated, ErrorRaised]


class EventChannel:
    """Fan-out of session events to any number of subscriber queues."""

    def __init__(self, max_pending: int = 256) -> None:
        self._max_pending = max_pending
        self._subscribers: list[asyncio.Queue[SessionEvent]] = []

    def subscribe(self) -> asyncio.Queue[SessionEvent]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self._max_pending)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[SessionEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event: SessionEvent) -> None:
        for queue in self._subscribers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Drop the oldest event.
                queue.get_nowait()
                queue.put_nowait(event)
                log.debug("event_overflow", event=type(event).__name__)
