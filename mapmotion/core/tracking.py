"""Tracking state machine.

    idle --start--> authorizing --granted--> tracking --stop--> stopped
                         |                       |
                         +--failure--> error     +--revoked--> stopped
                                         |
                                         +--> idle

``stopped --start--> authorizing`` is allowed; no state is terminal.

All session state is owned by the event loop. Subsystem callbacks (fixes,
delivery errors, authorization changes) may come from any thread and are
marshalled onto the loop with ``call_soon_threadsafe``. Fixes then pass
through the bounded FixQueue to a single consumer task, so a stop request
and a fix can never interleave mid-update.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime
from typing import Callable, TYPE_CHECKING

import structlog

from mapmotion.core.errors import AuthorizationDeniedError, MapMotionError, UnknownError
from mapmotion.core.events import ErrorRaised, EventChannel, LocationUpdated, StateChanged
from mapmotion.core.models import AuthorizationState, TrackingSession, TrackingState, utc_now
from mapmotion.core.sample_filter import LocationSampleFilter

if TYPE_CHECKING:
    from mapmotion.core.authorization import LocationAuthorizationNegotiator
    from mapmotion.core.models import Identity, LocationSample, RawFix
    from mapmotion.core.stats import TrackingStats
    from mapmotion.core.sync import LocationSyncStore
    from mapmotion.location.base import LocationSubsystem
    from mapmotion.queue.base import FixEvent, FixQueue

log = structlog.get_logger()

_ACTIVE = (TrackingState.AUTHORIZING, TrackingState.TRACKING)


class TrackingStateMachine:
    """Drives authorization, the fix pipeline and the observable session."""

    def __init__(
        self,
        subsystem: LocationSubsystem,
        negotiator: LocationAuthorizationNegotiator,
        sync: LocationSyncStore,
        queue: FixQueue,
        identity: Callable[[], Identity | None],
        *,
        stats: TrackingStats,
        events: EventChannel | None = None,
        sample_filter: LocationSampleFilter | None = None,
    ) -> None:
        self._negotiator = negotiator
        self._sync = sync
        self._queue = queue
        self._identity = identity
        self._stats = stats
        self.events = events or EventChannel()
        self._filter = sample_filter or LocationSampleFilter()

        self._session = TrackingSession()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._auth_task: asyncio.Task | None = None
        self._auth_abandoned = False
        self._denied_while_authorizing = False
        self._consumer_task: asyncio.Task | None = None

        subsystem.watch_authorization(self._on_authorization_changed)

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> TrackingState:
        return self._session.state

    def snapshot(self) -> TrackingSession:
        """Copy of the session safe to hand to observers."""
        return dataclasses.replace(self._session, today_path=list(self._session.today_path))

    # ------------------------------------------------------------------
    # Imperative operations
    # ------------------------------------------------------------------

    async def start(self) -> TrackingSession:
        """Negotiate authorization and begin tracking.

        Failures are not raised: they land in ``last_error`` and the machine
        passes through ``error`` back to ``idle``.
        """
        if self._session.state in _ACTIVE:
            return self.snapshot()

        self._loop = asyncio.get_running_loop()
        self._auth_abandoned = False
        self._denied_while_authorizing = False
        self._set_state(TrackingState.AUTHORIZING)
        log.info("tracking_authorizing")

        self._auth_task = self._loop.create_task(
            self._negotiator.start_tracking(self._on_fix, self._on_delivery_error)
        )
        try:
            await self._auth_task
        except asyncio.CancelledError:
            if not self._auth_abandoned:
                raise
            log.info("authorization_abandoned")
            return self.snapshot()
        except MapMotionError as err:
            self._fail_authorization(err)
            return self.snapshot()
        finally:
            self._auth_task = None

        # stop() or a revocation may have landed between the grant and this resume.
        if self._session.state != TrackingState.AUTHORIZING:
            log.info("tracking_start_superseded", state=self._session.state.value)
            return self.snapshot()
        if self._denied_while_authorizing:
            self._revoke()
            return self.snapshot()

        self._session.authorization = AuthorizationState.GRANTED
        self._session.tracking = True
        self._set_state(TrackingState.TRACKING)
        self._consumer_task = self._loop.create_task(self._consume())
        log.info("tracking_started")
        return self.snapshot()

    async def stop(self) -> TrackingSession:
        """Halt tracking. Calling it again is a no-op."""
        if self._session.state not in _ACTIVE:
            return self.snapshot()

        self._abandon_authorization()
        consumer = self._halt_updates()
        self._set_state(TrackingState.STOPPED)
        await self._wait_cancelled(consumer)
        log.info("tracking_stopped")
        return self.snapshot()

    async def teardown(self) -> None:
        """Cancel everything pending for this session (sign-out, shutdown)."""
        await self.stop()
        self._session.show_path = False
        self._session.today_path = []

    async def load_today_path(self, reference: datetime | None = None) -> list[LocationSample]:
        """Materialize today's path for the signed-in identity.

        A failure is recorded as the last error and re-raised.
        """
        identity = self._identity()
        if identity is None:
            self._session.today_path = []
            return []
        try:
            path = await self._sync.query_daily_path(identity.id, reference or utc_now())
        except MapMotionError as err:
            self.report_error(err)
            raise
        self._session.today_path = path
        return list(path)

    def set_show_path(self, show: bool) -> None:
        self._session.show_path = show
        if not show:
            self._session.today_path = []

    def report_error(self, error: MapMotionError) -> None:
        """Make ``error`` the last error. It replaces any earlier one."""
        self._session.last_error = error
        self.events.publish(ErrorRaised(error))
        log.warning("session_error", kind=error.kind, message=error.message)

    # ------------------------------------------------------------------
    # Subsystem callbacks (any thread)
    # ------------------------------------------------------------------

    def _on_fix(self, fix: RawFix) -> None:
        self._call_in_loop(self._enqueue, fix)

    def _on_delivery_error(self, error: Exception) -> None:
        self._call_in_loop(self._enqueue, error)

    def _on_authorization_changed(self, state: AuthorizationState) -> None:
        self._call_in_loop(self._handle_authorization, state)

    def _call_in_loop(self, callback, *args) -> None:
        loop = self._loop
        if loop is None:
            # No loop bound yet: handle inline.
            callback(*args)
            return
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Loop-side handlers
    # ------------------------------------------------------------------

    def _enqueue(self, event: FixEvent) -> None:
        if self._session.state != TrackingState.TRACKING:
            return
        if not self._queue.offer(event):
            self._stats.record_overflow()
            log.warning("fix_queue_full", depth=self._queue.qsize())
        self._stats.update_queue_depth(self._queue.qsize())

    def _handle_authorization(self, state: AuthorizationState) -> None:
        self._session.authorization = state
        if self._session.state == TrackingState.AUTHORIZING:
            # Settled by start() once the negotiation returns.
            self._denied_while_authorizing = state != AuthorizationState.GRANTED
            return
        if self._session.state != TrackingState.TRACKING:
            return

        if state == AuthorizationState.GRANTED:
            try:
                self._negotiator.begin_updates(self._on_fix, self._on_delivery_error)
            except UnknownError as err:
                self.report_error(err)
            return

        # Anything other than GRANTED ends tracking.
        self._revoke()

    async def _consume(self) -> None:
        """Run accepted fixes from the queue through the filter into storage."""
        async for result in self._filter.stream(self._queue.iterate(), self._current_user_id):
            if isinstance(result, MapMotionError):
                self._stats.record_delivery_error()
                self.report_error(result)
                continue

            self._session.last_location = result.fix
            self._stats.record_fix(accepted=result.sample is not None)
            self._stats.update_queue_depth(self._queue.qsize())
            self.events.publish(LocationUpdated(result.fix))
            if result.sample is not None:
                self._sync.submit(result.sample)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _current_user_id(self) -> str | None:
        identity = self._identity()
        return identity.id if identity is not None else None

    def _set_state(self, state: TrackingState) -> None:
        if self._session.state == state:
            return
        self._session.state = state
        self.events.publish(StateChanged(state))

    def _fail_authorization(self, err: MapMotionError) -> None:
        try:
            self._session.authorization = self._negotiator.authorization_state()
        except UnknownError:
            log.warning("authorization_state_unreadable", exc_info=True)
        self._session.tracking = False
        self._set_state(TrackingState.ERROR)
        self.report_error(err)
        self._set_state(TrackingState.IDLE)

    def _revoke(self) -> None:
        log.warning("authorization_revoked", authorization=self._session.authorization.value)
        consumer = self._halt_updates()
        self._set_state(TrackingState.STOPPED)
        self.report_error(AuthorizationDeniedError())
        if consumer is not None:
            self._loop.create_task(self._wait_cancelled(consumer))

    def _abandon_authorization(self) -> None:
        if self._auth_task is not None and not self._auth_task.done():
            self._auth_abandoned = True
            self._auth_task.cancel()

    def _halt_updates(self) -> asyncio.Task | None:
        """Stop the subscription and the consumer. Returns the cancelled consumer."""
        self._session.tracking = False
        try:
            self._negotiator.stop_updates()
        except UnknownError:
            log.error("stop_updates_failed", exc_info=True)

        consumer, self._consumer_task = self._consumer_task, None
        if consumer is not None:
            consumer.cancel()
        dropped = self._queue.drain()
        if dropped:
            log.debug("fixes_discarded", count=dropped)
        self._stats.update_queue_depth(0)
        return consumer

    @staticmethod
    async def _wait_cancelled(task: asyncio.Task | None) -> None:
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
