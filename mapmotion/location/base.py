"""Location subsystem interface (port).

Callbacks passed to a subsystem may be invoked from any thread; consumers
are responsible for marshalling them onto their own event loop.
"""

from __future__ import annotations

from typing import Callable, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from mapmotion.core.models import AuthorizationState, RawFix

FixHandler = Callable[["RawFix"], None]
ErrorHandler = Callable[[Exception], None]
AuthorizationHandler = Callable[["AuthorizationState"], None]

ACCURACY_BEST = "best"


class LocationSubsystem(Protocol):
    """Port: permission state plus a push subscription of raw fixes."""

    def services_enabled(self) -> bool: ...

    def authorization_state(self) -> AuthorizationState: ...

    def request_authorization(self) -> None: ...

    def start_updates(
        self,
        on_fix: FixHandler,
        on_error: ErrorHandler,
        *,
        min_distance_m: float,
        desired_accuracy: str = ACCURACY_BEST,
    ) -> None: ...

    def stop_updates(self) -> None: ...

    def watch_authorization(self, callback: AuthorizationHandler) -> None: ...
