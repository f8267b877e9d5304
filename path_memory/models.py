"""Data models for fixes, trajectories, stay clusters and snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Final


SCHEMA_VERSION: Final[str] = "2.1"
DEFAULT_TZ: Final[str] = "Asia/Seoul"


@dataclass(frozen=True, slots=True)
class Fix:
    """A single raw location sample delivered by the sensor.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        accuracy_m: Horizontal accuracy radius in meters.
        timestamp_ms: Unix epoch milliseconds.
        speed_mps: Reported speed in meters/second. None if the sensor did not report one;
            some devices use -1.0 as sentinel.
    """

    latitude: float
    longitude: float
    accuracy_m: float
    timestamp_ms: int
    speed_mps: float | None = None

    @property
    def timestamp_s(self) -> float:
        """Unix epoch seconds as float."""

        return self.timestamp_ms / 1000.0

    def with_speed(self, speed_mps: float) -> Fix:
        return replace(self, speed_mps=speed_mps)


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A fix as stored inside a trajectory."""

    latitude: float
    longitude: float
    timestamp_ms: int
    accuracy_m: float

    @classmethod
    def from_fix(cls, fix: Fix) -> TrackPoint:
        return cls(
            latitude=fix.latitude,
            longitude=fix.longitude,
            timestamp_ms=fix.timestamp_ms,
            accuracy_m=fix.accuracy_m,
        )


@dataclass(slots=True)
class Trajectory:
    """One continuous tracking session (a.k.a. route).

    ``end_ms`` is None while the trajectory is live.
    """

    id: str
    start_ms: int
    points: list[TrackPoint] = field(default_factory=list)
    end_ms: int | None = None
    distance_m: float = 0.0

    @property
    def is_finalized(self) -> bool:
        return self.end_ms is not None

    @property
    def duration_ms(self) -> int:
        if self.end_ms is None:
            return 0
        return max(0, self.end_ms - self.start_ms)


@dataclass(slots=True)
class StayCluster:
    """A place where the subject lingered.

    The centroid is the position of the fix that created the cluster and is never
    recomputed. ``promoted`` only ever goes from False to True.
    """

    latitude: float
    longitude: float
    start_ms: int
    end_ms: int
    duration_ms: int = 0
    promoted: bool = False

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0


@dataclass(frozen=True, slots=True)
class SnapshotInput:
    """Everything the store needs to persist one commit."""

    trajectories: tuple[Trajectory, ...]
    clusters: tuple[StayCluster, ...]
    total_distance_m: float


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A snapshot read back from durable storage."""

    schema_version: str
    trajectories: tuple[Trajectory, ...]
    clusters: tuple[StayCluster, ...]
    total_distance_m: float
    saved_at_ms: int


@dataclass(frozen=True, slots=True)
class StoreStatus:
    """Durable store usage."""

    used_bytes: int
    quota_bytes: int

    @property
    def percentage_used(self) -> float:
        if self.quota_bytes <= 0:
            return 0.0
        return 100.0 * self.used_bytes / self.quota_bytes

    @property
    def available_bytes(self) -> int:
        return max(0, self.quota_bytes - self.used_bytes)
