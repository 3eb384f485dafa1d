"""Tracking pipeline statistics.

In-memory counters for the fix pipeline and the persistence path.
No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class TrackingStats:
    """Thread-safe counters for fixes, samples and queue depth."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()

        self.fixes_received: int = 0
        self.fixes_accepted: int = 0
        self.fixes_dropped: int = 0
        self.fixes_overflowed: int = 0
        self.delivery_errors: int = 0
        self.samples_persisted: int = 0
        self.persist_errors: int = 0
        self.queue_depth: int = 0
        self.queue_max_depth: int = 0
        self.last_fix_at: float | None = None

    def record_fix(self, *, accepted: bool) -> None:
        with self._lock:
            self.fixes_received += 1
            self.last_fix_at = time.time()
            if accepted:
                self.fixes_accepted += 1
            else:
                self.fixes_dropped += 1

    def record_overflow(self) -> None:
        with self._lock:
            self.fixes_overflowed += 1

    def record_delivery_error(self) -> None:
        with self._lock:
            self.delivery_errors += 1

    def record_persisted(self) -> None:
        with self._lock:
            self.samples_persisted += 1

    def record_persist_error(self) -> None:
        with self._lock:
            self.persist_errors += 1

    def update_queue_depth(self, depth: int) -> None:
        with self._lock:
            self.queue_depth = depth
            if depth > self.queue_max_depth:
                self.queue_max_depth = depth

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        with self._lock:
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "fixes_received": self.fixes_received,
                "fixes_accepted": self.fixes_accepted,
                "fixes_dropped": self.fixes_dropped,
                "fixes_overflowed": self.fixes_overflowed,
                "delivery_errors": self.delivery_errors,
                "samples_persisted": self.samples_persisted,
                "persist_errors": self.persist_errors,
                "queue_depth": self.queue_depth,
                "queue_max_depth_ever": self.queue_max_depth,
                "seconds_since_last_fix": (
                    round(time.time() - self.last_fix_at, 1)
                    if self.last_fix_at is not None else None
                ),
            }
