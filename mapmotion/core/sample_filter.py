"""Location sample filter — decides which raw fixes become samples.

Every fix refreshes the last known location. Only fixes within the
accuracy radius, received while an identity is signed in, are turned into
LocationSample objects for persistence. The rest are dropped silently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Callable, TYPE_CHECKING

import structlog

from mapmotion.core.errors import wrap_unknown
from mapmotion.core.models import LocationSample

if TYPE_CHECKING:
    from mapmotion.core.errors import MapMotionError
    from mapmotion.core.models import RawFix
    from mapmotion.queue.base import FixEvent

log = structlog.get_logger()

# Largest horizontal accuracy radius (meters) still worth persisting.
MAX_ACCURACY_M = 20.0


@dataclass(frozen=True)
class FilterResult:
    fix: RawFix
    sample: LocationSample | None = None


class LocationSampleFilter:
    """Accuracy gate over the raw fix stream."""

    def __init__(self) -> None:
        self.last_known: RawFix | None = None

    def accept(self, fix: RawFix, identity_id: str | None) -> LocationSample | None:
        self.last_known = fix
        if fix.accuracy_m > MAX_ACCURACY_M:
            log.debug("fix_dropped", reason="accuracy", accuracy_m=fix.accuracy_m)
            return None
        if not identity_id:
            log.debug("fix_dropped", reason="signed_out")
            return None
        return LocationSample.create(identity_id, fix)

    async def stream(
        self,
        events: AsyncIterator[FixEvent],
        identity_id: Callable[[], str | None],
    ) -> AsyncIterator[FilterResult | MapMotionError]:
        """Yield a FilterResult per fix and a wrapped error per delivery failure.

        Delivery errors do not end the stream.
        """
        async for event in events:
            if isinstance(event, Exception):
                yield wrap_unknown(event)
                continue
            yield FilterResult(fix=event, sample=self.accept(event, identity_id()))
