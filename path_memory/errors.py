"""Exception hierarchy for path_memory."""

from __future__ import annotations

from enum import Enum


class PathMemoryError(Exception):
    """Base class for all path_memory errors."""


class SessionStateError(PathMemoryError):
    """Raised on an illegal tracking-session transition."""


class SensorErrorCode(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


_SENSOR_MESSAGES = {
    SensorErrorCode.PERMISSION_DENIED: "location permission was denied",
    SensorErrorCode.UNAVAILABLE: "location information is unavailable",
    SensorErrorCode.TIMEOUT: "location request timed out",
    SensorErrorCode.UNKNOWN: "unknown location error",
}


class SensorError(PathMemoryError):
    """An error notification from the fix source."""

    def __init__(self, code: SensorErrorCode, message: str | None = None) -> None:
        self.code = SensorErrorCode(code)
        self.message = message or _SENSOR_MESSAGES[self.code]
        super().__init__(f"{self.code.value}: {self.message}")

    @property
    def is_fatal(self) -> bool:
        """Only a denied permission ends the tracking session."""

        return self.code is SensorErrorCode.PERMISSION_DENIED


class QuotaExceededError(PathMemoryError):
    """Serialized snapshot is still larger than the quota after eviction."""

    def __init__(self, size_bytes: int, quota_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.quota_bytes = quota_bytes
        super().__init__(
            f"snapshot is {size_bytes} bytes, quota is {quota_bytes} bytes; "
            "delete old trajectories manually"
        )


class StoreWriteError(PathMemoryError):
    """The durable backend failed to write."""


class InvalidImportError(PathMemoryError):
    """An import document failed validation. Nothing was modified."""


class CorruptSnapshotError(PathMemoryError):
    """The durable blob could not be decoded."""
