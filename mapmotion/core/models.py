"""MapMotion — core internal data models.

These are plain dataclasses with no framework dependencies.
Documents and cache blobs are converted to/from these at the boundary.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def to_epoch_ms(dt: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def from_epoch_ms(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthorizationState(str, Enum):
    """Mirror of the OS location permission. Read only, eventually consistent."""

    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED_OR_RESTRICTED = "denied_or_restricted"


class TrackingState(str, Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    TRACKING = "tracking"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    last_login: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "last_login_date": to_epoch_ms(self.last_login),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Identity:
        return cls(
            id=data["id"],
            email=data["email"],
            last_login=from_epoch_ms(data["last_login_date"]),
        )


@dataclass(frozen=True)
class RawFix:
    """One coordinate reading delivered by the location subsystem."""

    latitude: float
    longitude: float
    timestamp: datetime
    accuracy_m: float

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp_ms": to_epoch_ms(self.timestamp),
            "accuracy_m": self.accuracy_m,
        }


@dataclass(frozen=True)
class LocationSample:
    id: str
    user_id: str
    latitude: float
    longitude: float
    timestamp: datetime
    accuracy_m: float

    @classmethod
    def create(cls, user_id: str, fix: RawFix) -> LocationSample:
        """Build a sample from an accepted fix, generating its id."""
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            latitude=fix.latitude,
            longitude=fix.longitude,
            timestamp=fix.timestamp,
            accuracy_m=fix.accuracy_m,
        )

    def to_document(self) -> dict:
        return {
            "user_id": self.user_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": to_epoch_ms(self.timestamp),
            "accuracy": self.accuracy_m,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> LocationSample:
        return cls(
            id=doc_id,
            user_id=data["user_id"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=from_epoch_ms(data["timestamp"]),
            accuracy_m=float(data["accuracy"]),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_document()}


@dataclass
class TrackingSession:
    """Observable per-run tracking state.

    ``tracking`` is only ever True while ``authorization`` is GRANTED.
    """

    state: TrackingState = TrackingState.IDLE
    authorization: AuthorizationState = AuthorizationState.NOT_DETERMINED
    tracking: bool = False
    last_location: RawFix | None = None
    last_error: Exception | None = None
    show_path: bool = False
    today_path: list[LocationSample] = field(default_factory=list)
