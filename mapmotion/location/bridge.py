"""Device-bridge implementation of LocationSubsystem.

The phone owns the real location hardware. It pushes its permission state
and raw fixes to the service (see ``mapmotion.api.device``), and reads back
whether a permission prompt was requested and whether updates are wanted.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import structlog

from mapmotion.core.models import AuthorizationState
from mapmotion.location.base import ACCURACY_BEST

if TYPE_CHECKING:
    from mapmotion.core.models import RawFix
    from mapmotion.location.base import AuthorizationHandler, ErrorHandler, FixHandler

log = structlog.get_logger()


class DeviceDeliveryError(Exception):
    """A location delivery failure reported by the device."""


class BridgeLocationSubsystem:
    """LocationSubsystem fed by device pushes. Thread-safe."""

    def __init__(
        self,
        services_enabled: bool = True,
        authorization: AuthorizationState = AuthorizationState.NOT_DETERMINED,
    ) -> None:
        self._lock = threading.Lock()
        self._services_enabled = services_enabled
        self._authorization = authorization
        self._watchers: list[AuthorizationHandler] = []
        self._on_fix: FixHandler | None = None
        self._on_error: ErrorHandler | None = None
        self.permission_requested = False
        self.min_distance_m = 0.0
        self.desired_accuracy = ACCURACY_BEST

    # ------------------------------------------------------------------
    # LocationSubsystem
    # ------------------------------------------------------------------

    def services_enabled(self) -> bool:
        with self._lock:
            return self._services_enabled

    def authorization_state(self) -> AuthorizationState:
        with self._lock:
            return self._authorization

    def request_authorization(self) -> None:
        with self._lock:
            self.permission_requested = True
        log.info("permission_prompt_requested")

    def start_updates(
        self,
        on_fix: FixHandler,
        on_error: ErrorHandler,
        *,
        min_distance_m: float,
        desired_accuracy: str = ACCURACY_BEST,
    ) -> None:
        with self._lock:
            self._on_fix = on_fix
            self._on_error = on_error
            self.min_distance_m = min_distance_m
            self.desired_accuracy = desired_accuracy

    def stop_updates(self) -> None:
        with self._lock:
            self._on_fix = None
            self._on_error = None

    def watch_authorization(self, callback: AuthorizationHandler) -> None:
        with self._lock:
            self._watchers.append(callback)

    # ------------------------------------------------------------------
    # Device side
    # ------------------------------------------------------------------

    @property
    def updating(self) -> bool:
        with self._lock:
            return self._on_fix is not None

    def update_status(
        self,
        services_enabled: bool | None = None,
        authorization: AuthorizationState | None = None,
    ) -> None:
        """Apply a status report from the device and notify watchers of changes."""
        with self._lock:
            if services_enabled is not None:
                self._services_enabled = services_enabled
            changed = authorization is not None and authorization != self._authorization
            if changed:
                self._authorization = authorization
                if authorization != AuthorizationState.NOT_DETERMINED:
                    self.permission_requested = False
            watchers = list(self._watchers)

        if changed:
            log.info("authorization_reported", authorization=authorization.value)
            for callback in watchers:
                callback(authorization)

    def deliver_fix(self, fix: RawFix) -> bool:
        """Forward a fix to the active subscription. Returns False if none is active."""
        with self._lock:
            handler = self._on_fix
        if handler is None:
            return False
        handler(fix)
        return True

    def deliver_error(self, error: Exception) -> bool:
        with self._lock:
            handler = self._on_error
        if handler is None:
            return False
        handler(error)
        return True
