"""Consumer-facing session façade.

Bundles the auth controller and the tracking state machine behind the
operations the UI layer calls (toggle tracking, toggle path display, sign
in, sign out) and renders the observable session as plain data.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from mapmotion.core.auth import check_credentials
from mapmotion.core.errors import MapMotionError, UnknownError
from mapmotion.core.models import TrackingState

if TYPE_CHECKING:
    from mapmotion.core.auth import AuthSessionController
    from mapmotion.core.models import Identity, TrackingSession
    from mapmotion.core.tracking import TrackingStateMachine

log = structlog.get_logger()


class MapSession:
    """One app session: the signed-in identity plus its tracking state."""

    def __init__(self, auth: AuthSessionController, tracker: TrackingStateMachine) -> None:
        self.auth = auth
        self.tracker = tracker

    async def sign_in(self, email: str, password: str) -> Identity:
        """Validate locally, then sign in. Errors become the last error and are raised."""
        try:
            check_credentials(email, password)
            return await self.auth.sign_in(email, password)
        except MapMotionError as err:
            self.tracker.report_error(err)
            raise

    async def sign_up(self, email: str, password: str) -> Identity:
        try:
            check_credentials(email, password)
            return await self.auth.sign_up(email, password)
        except MapMotionError as err:
            self.tracker.report_error(err)
            raise

    async def sign_out(self) -> None:
        """Tear tracking down, then end the provider session."""
        await self.tracker.teardown()
        try:
            await self.auth.sign_out()
        except MapMotionError as err:
            self.tracker.report_error(err)
            raise

    async def toggle_tracking(self) -> TrackingSession:
        if self.tracker.state in (TrackingState.AUTHORIZING, TrackingState.TRACKING):
            return await self.tracker.stop()
        return await self.tracker.start()

    async def toggle_path_display(self, reference: datetime | None = None) -> TrackingSession:
        """Flip path display; turning it on loads today's path.

        A failed load keeps the display on with the previous path and
        surfaces the error through ``last_error``.
        """
        show = not self.tracker.snapshot().show_path
        self.tracker.set_show_path(show)
        if show:
            try:
                await self.tracker.load_today_path(reference)
            except MapMotionError:
                log.info("path_display_without_data")
        return self.tracker.snapshot()

    def previous_logins(self) -> list[str]:
        return self.auth.get_previous_logins()

    def describe(self) -> dict:
        """JSON-serializable view of everything the UI observes."""
        session = self.tracker.snapshot()
        user = self.auth.get_current_user()
        location = session.last_location
        error = session.last_error
        if error is not None and not isinstance(error, MapMotionError):
            error = UnknownError(error)
        return {
            "user": {"id": user.id, "email": user.email} if user is not None else None,
            "state": session.state.value,
            "authorization": session.authorization.value,
            "tracking": session.tracking,
            "current_location": location.to_dict() if location is not None else None,
            "show_path": session.show_path,
            "today_path": [s.to_dict() for s in session.today_path] if session.show_path else [],
            "last_error": (
                {"kind": error.kind, "message": error.message} if error is not None else None
            ),
        }
