"""Location authorization negotiation.

Permission prompts resolve asynchronously and the OS state may lag the
dialog, so the request is followed by a bounded two-stage wait: a short
first wait catches platforms that answer immediately, a second one gives
the user time to tap. Still undetermined after both counts as denied.
"""

from __future__ import annotations

import asyncio
from typing import Callable, TYPE_CHECKING

import structlog

from mapmotion.core.errors import (
    AuthorizationDeniedError,
    ServicesDisabledError,
    UnknownError,
)
from mapmotion.core.models import AuthorizationState
from mapmotion.location.base import ACCURACY_BEST

if TYPE_CHECKING:
    from mapmotion.location.base import ErrorHandler, FixHandler, LocationSubsystem

log = structlog.get_logger()

# Seconds to wait before the first and second permission checks.
INITIAL_WAIT_S = 0.5
SECOND_WAIT_S = 1.0

# Minimum displacement between fixes, enforced by the OS subscription.
MIN_DISPLACEMENT_M = 10.0


async def wait_for_decision(
    read_state: Callable[[], AuthorizationState],
    first_wait: float = INITIAL_WAIT_S,
    second_wait: float = SECOND_WAIT_S,
) -> AuthorizationState:
    """Wait ``first_wait``; if still undetermined wait ``second_wait`` and re-read.

    Cancelling the awaiting task abandons the wait with no further reads.
    """
    await asyncio.sleep(first_wait)
    state = read_state()
    if state == AuthorizationState.NOT_DETERMINED:
        log.debug("authorization_pending", waited=first_wait)
        await asyncio.sleep(second_wait)
        state = read_state()
    return state


class LocationAuthorizationNegotiator:
    """Requests location permission and starts the OS fix subscription."""

    def __init__(
        self,
        subsystem: LocationSubsystem,
        *,
        initial_wait: float = INITIAL_WAIT_S,
        second_wait: float = SECOND_WAIT_S,
    ) -> None:
        self._subsystem = subsystem
        self._initial_wait = initial_wait
        self._second_wait = second_wait

    def authorization_state(self) -> AuthorizationState:
        try:
            return self._subsystem.authorization_state()
        except Exception as exc:
            raise UnknownError(exc) from exc

    async def request_authorization(self) -> None:
        """Ask for permission and wait (bounded) for the answer.

        Raises ServicesDisabledError, AuthorizationDeniedError or UnknownError.
        """
        self._ensure_enabled()
        try:
            self._subsystem.request_authorization()
        except Exception as exc:
            raise UnknownError(exc) from exc

        state = await wait_for_decision(
            self.authorization_state, self._initial_wait, self._second_wait,
        )
        if state != AuthorizationState.GRANTED:
            log.info("authorization_refused", state=state.value)
            raise AuthorizationDeniedError()
        log.info("authorization_granted")

    async def start_tracking(self, on_fix: FixHandler, on_error: ErrorHandler) -> None:
        """Begin continuous updates, negotiating permission first if needed."""
        self._ensure_enabled()
        state = self.authorization_state()
        if state == AuthorizationState.DENIED_OR_RESTRICTED:
            raise AuthorizationDeniedError()
        if state == AuthorizationState.NOT_DETERMINED:
            await self.request_authorization()
        self.begin_updates(on_fix, on_error)

    def begin_updates(self, on_fix: FixHandler, on_error: ErrorHandler) -> None:
        try:
            self._subsystem.start_updates(
                on_fix,
                on_error,
                min_distance_m=MIN_DISPLACEMENT_M,
                desired_accuracy=ACCURACY_BEST,
            )
        except Exception as exc:
            raise UnknownError(exc) from exc

    def stop_updates(self) -> None:
        try:
            self._subsystem.stop_updates()
        except Exception as exc:
            raise UnknownError(exc) from exc

    def _ensure_enabled(self) -> None:
        try:
            enabled = self._subsystem.services_enabled()
        except Exception as exc:
            raise UnknownError(exc) from exc
        if not enabled:
            raise ServicesDisabledError()
