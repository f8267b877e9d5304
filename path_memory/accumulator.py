"""Live trajectory accumulation."""

from __future__ import annotations

import logging
import secrets
import time
from enum import Enum
from typing import Callable

from path_memory.errors import SessionStateError
from path_memory.geo import haversine_m
from path_memory.models import Fix, TrackPoint, Trajectory

logger = logging.getLogger(__name__)


class AccumulatorState(str, Enum):
    IDLE = "idle"
    LIVE = "live"
    FINALIZED = "finalized"


def new_trajectory_id(now_ms: int) -> str:
    """Base36 time prefix plus random suffix, unique enough for one device."""

    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    n = max(0, now_ms)
    prefix = ""
    while True:
        n, r = divmod(n, 36)
        prefix = digits[r] + prefix
        if n == 0:
            break
    return f"{prefix}{secrets.token_hex(4)}"


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class TrajectoryAccumulator:
    """Owns the in-progress trajectory: Idle -> Live -> Finalized.

    A finalized accumulator may be started again for the next session.
    """

    def __init__(
        self,
        now_ms: Callable[[], int] = _wall_clock_ms,
        id_factory: Callable[[int], str] = new_trajectory_id,
    ) -> None:
        self._now_ms = now_ms
        self._id_factory = id_factory
        self._state = AccumulatorState.IDLE
        self._current: Trajectory | None = None

    @property
    def state(self) -> AccumulatorState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is AccumulatorState.LIVE

    @property
    def current(self) -> Trajectory | None:
        """The live trajectory, or None when not tracking."""

        return self._current if self.is_live else None

    def start(self) -> Trajectory:
        if self.is_live:
            raise SessionStateError("trajectory already live")
        now = self._now_ms()
        self._current = Trajectory(id=self._id_factory(now), start_ms=now)
        self._state = AccumulatorState.LIVE
        return self._current

    def append(self, fix: Fix) -> float:
        """Append an accepted fix and return the distance it added in meters."""

        if not self.is_live or self._current is None:
            raise SessionStateError("cannot append: no live trajectory")
        traj = self._current
        added = 0.0
        if traj.points:
            prev = traj.points[-1]
            added = haversine_m(prev.latitude, prev.longitude, fix.latitude, fix.longitude)
            traj.distance_m += added
        traj.points.append(TrackPoint.from_fix(fix))
        return added

    def finalize(self) -> Trajectory | None:
        """End the live trajectory.

        Returns:
            The finished trajectory, or None when it had fewer than 2 points and
            was discarded.
        """

        if not self.is_live or self._current is None:
            raise SessionStateError("cannot finalize: no live trajectory")
        traj = self._current
        traj.end_ms = self._now_ms()
        self._current = None
        self._state = AccumulatorState.FINALIZED
        if len(traj.points) < 2:
            logger.info("discarding trajectory %s with %d point(s)", traj.id, len(traj.points))
            return None
        return traj
