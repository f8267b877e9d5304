"""Accept/reject raw fixes by accuracy and implied speed."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Union

from path_memory.config import TrackerConfig
from path_memory.geo import haversine_m
from path_memory.models import Fix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LowAccuracy:
    """Accuracy radius is wider than the current threshold."""

    accuracy_m: float
    threshold_m: float

    def describe(self) -> str:
        return f"low accuracy ({round(self.accuracy_m)}m > {round(self.threshold_m)}m)"


@dataclass(frozen=True, slots=True)
class ImplausibleSpeed:
    """Moving from the previous accepted fix would need an impossible speed.

    ``speed_mps`` is ``inf`` when the fix is not later than the previous one.
    """

    speed_mps: float
    distance_m: float
    elapsed_s: float

    def describe(self) -> str:
        if math.isinf(self.speed_mps):
            return f"non-increasing timestamp ({self.elapsed_s:.3f}s after previous fix)"
        return f"implausible speed ({self.speed_mps * 3.6:.1f} km/h over {self.distance_m:.0f}m)"


@dataclass(frozen=True, slots=True)
class LateFix:
    """Fix delivered after the tracking session was stopped."""

    timestamp_ms: int

    def describe(self) -> str:
        return "fix arrived after tracking stopped"


RejectReason = Union[LowAccuracy, ImplausibleSpeed, LateFix]


@dataclass(frozen=True, slots=True)
class Accept:
    fix: Fix


@dataclass(frozen=True, slots=True)
class Reject:
    fix: Fix
    reason: RejectReason


FilterResult = Union[Accept, Reject]


class LocationFilter:
    """Pure accuracy + outlier-speed gate.

    The filter keeps no state of its own; the caller supplies the previously
    accepted fix and how many fixes have been accepted so far.
    """

    def __init__(self, config: TrackerConfig | None = None) -> None:
        cfg = config or TrackerConfig()
        self._cold_start_accuracy_m = cfg.cold_start_accuracy_m
        self._steady_accuracy_m = cfg.steady_accuracy_m
        self._cold_start_fixes = cfg.cold_start_fixes
        self._max_speed_mps = cfg.max_speed_mps

    def accuracy_threshold(self, accepted_count: int) -> float:
        if accepted_count < self._cold_start_fixes:
            return self._cold_start_accuracy_m
        return self._steady_accuracy_m

    def evaluate(self, fix: Fix, prior: Fix | None, accepted_count: int) -> FilterResult:
        """Evaluate one fix.

        Args:
            fix: Incoming raw fix.
            prior: Last accepted fix, or None at the start of a session.
            accepted_count: Number of fixes accepted so far.

        Returns:
            Accept with the fix's speed normalised to ``max(0, speed)``, or Reject
            with the reason.
        """

        threshold = self.accuracy_threshold(accepted_count)
        if fix.accuracy_m > threshold:
            logger.debug("reject fix at %s: accuracy %.1fm > %.1fm", fix.timestamp_ms, fix.accuracy_m, threshold)
            return Reject(fix, LowAccuracy(accuracy_m=fix.accuracy_m, threshold_m=threshold))

        if prior is not None:
            distance = haversine_m(prior.latitude, prior.longitude, fix.latitude, fix.longitude)
            elapsed_s = (fix.timestamp_ms - prior.timestamp_ms) / 1000.0
            speed = distance / elapsed_s if elapsed_s > 0 else math.inf
            if speed > self._max_speed_mps:
                logger.debug(
                    "reject fix at %s: %.1fm in %.3fs", fix.timestamp_ms, distance, elapsed_s
                )
                return Reject(fix, ImplausibleSpeed(speed_mps=speed, distance_m=distance, elapsed_s=elapsed_s))

        speed = fix.speed_mps if fix.speed_mps is not None else 0.0
        return Accept(fix.with_speed(max(0.0, speed)))
