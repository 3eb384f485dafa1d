"""Queue interface (port) between fix delivery and the tracking pipeline."""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from mapmotion.core.models import RawFix

FixEvent = Union["RawFix", Exception]


class FixQueue(Protocol):
    """Port: accepts fixes (or delivery errors) and delivers them in order."""

    def offer(self, event: FixEvent) -> bool: ...

    def iterate(self) -> AsyncIterator[FixEvent]: ...

    def drain(self) -> int: ...

    def qsize(self) -> int: ...
