"""Tracking session: wires filter, accumulator, stay detector and store together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from path_memory.accumulator import TrajectoryAccumulator
from path_memory.clock import SystemClock
from path_memory.config import TrackerConfig
from path_memory.errors import SensorError, SessionStateError
from path_memory.filtering import FilterResult, LateFix, LocationFilter, Reject
from path_memory.models import Fix, Snapshot, SnapshotInput, StayCluster, Trajectory
from path_memory.sensors import FixSource
from path_memory.stays import ClusterUpdated, StayClusterDetector
from path_memory.store import SnapshotStore
from path_memory.timeutils import format_distance

logger = logging.getLogger(__name__)


class SessionObserver:
    """Receives session events. Override the methods you need."""

    def on_accepted(self, fix: Fix) -> None:
        pass

    def on_rejected(self, rejection: Reject) -> None:
        pass

    def on_session_start(self) -> None:
        pass

    def on_session_stop(self, trajectory: Trajectory | None) -> None:
        pass

    def on_session_pause(self, paused: bool) -> None:
        pass

    def on_cluster_promoted(self, cluster: StayCluster) -> None:
        pass

    def on_sensor_error(self, error: SensorError) -> None:
        pass


@dataclass
class RecordingObserver(SessionObserver):
    """Keeps every event as ``(name, payload)`` in arrival order."""

    events: list[tuple[str, Any]] = field(default_factory=list)

    def on_accepted(self, fix: Fix) -> None:
        self.events.append(("accepted", fix))

    def on_rejected(self, rejection: Reject) -> None:
        self.events.append(("rejected", rejection))

    def on_session_start(self) -> None:
        self.events.append(("start", None))

    def on_session_stop(self, trajectory: Trajectory | None) -> None:
        self.events.append(("stop", trajectory))

    def on_session_pause(self, paused: bool) -> None:
        self.events.append(("pause", paused))

    def on_cluster_promoted(self, cluster: StayCluster) -> None:
        self.events.append(("promoted", cluster))

    def on_sensor_error(self, error: SensorError) -> None:
        self.events.append(("sensor_error", error))

    def named(self, name: str) -> list[Any]:
        return [payload for n, payload in self.events if n == name]


@dataclass(frozen=True, slots=True)
class TrackingStatus:
    tracking: bool
    paused: bool
    accepted: int
    rejected: int
    last_fix: Fix | None
    tracking_seconds: float
    total_distance_m: float
    trajectories: int
    clusters: int

    @property
    def state_label(self) -> str:
        if not self.tracking:
            return "stopped"
        return "paused" if self.paused else "tracking"


class TrackingSession:
    """One user's tracking state, explicitly constructed from its collaborators.

    Fixes delivered after ``stop`` has begun are rejected with ``LateFix``: the
    session unsubscribes from the source and finalizes the trajectory before it
    returns, so a fix is either fully applied before the stop or reported as late.
    """

    def __init__(
        self,
        source: FixSource,
        store: SnapshotStore,
        config: TrackerConfig | None = None,
        *,
        observer: SessionObserver | None = None,
        now_ms: Callable[[], int] | None = None,
        location_filter: LocationFilter | None = None,
        accumulator: TrajectoryAccumulator | None = None,
        detector: StayClusterDetector | None = None,
    ) -> None:
        self.config = config or TrackerConfig()
        self.source = source
        self.store = store
        self.observer = observer or SessionObserver()
        self._now_ms = now_ms or SystemClock()
        self.filter = location_filter or LocationFilter(self.config)
        self.accumulator = accumulator or TrajectoryAccumulator(now_ms=self._now_ms)
        self.detector = detector or StayClusterDetector(self.config)

        self.history: list[Trajectory] = []
        self.total_distance_m = 0.0
        self._tracking = False
        self._paused = False
        self._accepted = 0
        self._rejected = 0
        self._last_accepted: Fix | None = None
        self._started_ms: int | None = None
        self._last_autosave_ms = self._now_ms()

    # -- lifecycle ----------------------------------------------------------

    @property
    def tracking(self) -> bool:
        return self._tracking

    @property
    def paused(self) -> bool:
        return self._paused

    def restore(self) -> Snapshot | None:
        """Load persisted history; an unreadable store starts empty."""

        snapshot = self.store.load()
        if snapshot is None:
            return None
        self.history = list(snapshot.trajectories)
        self.detector.reset(snapshot.clusters)
        self.total_distance_m = snapshot.total_distance_m
        logger.info(
            "restored %d trajectories, %d stays, %s total",
            len(self.history),
            len(snapshot.clusters),
            format_distance(self.total_distance_m),
        )
        return snapshot

    def start(self) -> Trajectory:
        if self._tracking:
            raise SessionStateError("already tracking")
        trajectory = self.accumulator.start()
        self._tracking = True
        self._paused = False
        self._accepted = 0
        self._rejected = 0
        self._last_accepted = None
        self._started_ms = trajectory.start_ms
        self.source.watch(self.handle_fix, self.handle_error)
        logger.info("tracking started (trajectory %s)", trajectory.id)
        self.observer.on_session_start()
        return trajectory

    def toggle_pause(self) -> bool:
        """Flip pause state and return it. Paused sessions filter but do not record."""

        if not self._tracking:
            raise SessionStateError("not tracking")
        self._paused = not self._paused
        logger.info("tracking %s", "paused" if self._paused else "resumed")
        self.observer.on_session_pause(self._paused)
        return self._paused

    def stop(self) -> Trajectory | None:
        """Stop tracking and move the finished trajectory into history.

        Returns:
            The finalized trajectory, or None when it had fewer than 2 points.
        """

        if not self._tracking:
            raise SessionStateError("not tracking")
        self.source.clear_watch()
        self._tracking = False
        self._paused = False
        trajectory = self.accumulator.finalize()
        self._started_ms = None
        if trajectory is not None:
            self.history.append(trajectory)
            self.total_distance_m += trajectory.distance_m
            logger.info(
                "trajectory %s saved: %d points, %s",
                trajectory.id,
                len(trajectory.points),
                format_distance(trajectory.distance_m),
            )
            self.store.commit(self.snapshot_input())
        self.observer.on_session_stop(trajectory)
        return trajectory

    def shutdown(self) -> None:
        """Stop tracking if needed and write everything out now."""

        if self._tracking:
            self.stop()
        self.autosave()
        self.store.flush()

    # -- events -------------------------------------------------------------

    def handle_fix(self, fix: Fix) -> FilterResult:
        if not self._tracking:
            rejection = Reject(fix, LateFix(timestamp_ms=fix.timestamp_ms))
            self._rejected += 1
            logger.debug("late fix at %s dropped", fix.timestamp_ms)
            self.observer.on_rejected(rejection)
            return rejection

        result = self.filter.evaluate(fix, self._last_accepted, self._accepted)
        if isinstance(result, Reject):
            self._rejected += 1
            self.observer.on_rejected(result)
            return result

        accepted = result.fix
        self._accepted += 1
        self._last_accepted = accepted
        self.observer.on_accepted(accepted)
        if not self._paused:
            self._record(accepted)
        return result

    def _record(self, fix: Fix) -> None:
        self.accumulator.append(fix)
        event = self.detector.observe(fix)
        if isinstance(event, ClusterUpdated) and event.promoted_now:
            self.observer.on_cluster_promoted(event.cluster)
        self.store.commit(self.snapshot_input())

    def handle_error(self, error: SensorError) -> None:
        logger.warning("sensor error: %s", error)
        self.observer.on_sensor_error(error)
        if error.is_fatal and self._tracking:
            self.stop()

    def current_position(self, timeout_s: float | None = None) -> Fix:
        """One-shot position request.

        Raises:
            SensorError: TIMEOUT if no fix arrives in time.
        """

        timeout = self.config.position_timeout_seconds if timeout_s is None else timeout_s
        return self.source.get_current_position(timeout)

    # -- persistence --------------------------------------------------------

    def snapshot_input(self) -> SnapshotInput:
        evicted = self.store.evicted_ids
        if evicted:
            self.history = [t for t in self.history if t.id not in evicted]
        return SnapshotInput(
            trajectories=tuple(self.history),
            # copies: a debounced write may serialize on the timer thread
            clusters=tuple(replace(c) for c in self.detector.clusters),
            total_distance_m=self.total_distance_m,
        )

    def autosave(self) -> bool:
        """Request a commit if there is anything worth saving."""

        self._last_autosave_ms = self._now_ms()
        if not (self.history or self.detector.clusters or self._tracking):
            return False
        self.store.commit(self.snapshot_input())
        return True

    def tick(self) -> bool:
        """Periodic timer hook: autosave once the autosave interval has passed."""

        interval_ms = self.config.autosave_interval_seconds * 1000
        if self._now_ms() - self._last_autosave_ms < interval_ms:
            return False
        return self.autosave()

    def clear_history(self) -> None:
        self.store.clear()
        self.history = []
        self.detector.reset()
        self.total_distance_m = 0.0

    # -- reporting ----------------------------------------------------------

    def status(self) -> TrackingStatus:
        live = self.accumulator.current
        live_distance = live.distance_m if live is not None else 0.0
        elapsed = 0.0
        if self._started_ms is not None:
            elapsed = max(0.0, (self._now_ms() - self._started_ms) / 1000.0)
        return TrackingStatus(
            tracking=self._tracking,
            paused=self._paused,
            accepted=self._accepted,
            rejected=self._rejected,
            last_fix=self._last_accepted,
            tracking_seconds=elapsed,
            total_distance_m=self.total_distance_m + live_distance,
            trajectories=len(self.history),
            clusters=len(self.detector.clusters),
        )
