"""Durable, quota-bounded snapshot storage.

The store keeps one JSON document per key inside a directory:

    history.json          current snapshot
    history.backup.json   previous snapshot, written before clear/import
    history.broken.json   quarantined blob that failed to decode

Writes go through a temporary file and ``Path.replace`` so that readers never
observe a half-written document.
"""

from __future__ import annotations

import json
import logging
import platform
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from path_memory.clock import SystemClock
from path_memory.config import TrackerConfig
from path_memory.errors import (
    CorruptSnapshotError,
    InvalidImportError,
    PathMemoryError,
    QuotaExceededError,
    StoreWriteError,
)
from path_memory.models import SCHEMA_VERSION, Snapshot, SnapshotInput, StayCluster, StoreStatus, TrackPoint, Trajectory
from path_memory.scheduling import Debouncer, TimerFactory, thread_timer
from path_memory.simplify import TrajectorySimplifier
from path_memory.timeutils import iso_utc_from_epoch_ms

logger = logging.getLogger(__name__)

PRIMARY_KEY = "history"
BACKUP_KEY = "history.backup"
QUARANTINE_KEY = "history.broken"


def _round_coord(value: float) -> float:
    return round(value, 6)


def _encode(document: Mapping[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


# ---------------------------------------------------------------------------
# serialization


def serialize_trajectory(traj: Trajectory, simplifier: TrajectorySimplifier) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": traj.id,
        "points": [
            {
                "lat": _round_coord(p.latitude),
                "lng": _round_coord(p.longitude),
                "timestamp": p.timestamp_ms,
                "accuracy": round(p.accuracy_m),
            }
            for p in simplifier.simplify_points(traj.points)
        ],
        "startTime": traj.start_ms,
        "distanceMeters": round(traj.distance_m),
    }
    if traj.end_ms is not None:
        out["endTime"] = traj.end_ms
    return out


def serialize_cluster(cluster: StayCluster) -> dict[str, Any]:
    return {
        "lat": _round_coord(cluster.latitude),
        "lng": _round_coord(cluster.longitude),
        "startTime": cluster.start_ms,
        "endTime": cluster.end_ms,
        "durationMs": cluster.duration_ms,
        "promoted": cluster.promoted,
    }


def serialize_snapshot(
    snapshot: SnapshotInput,
    saved_at_ms: int,
    simplifier: TrajectorySimplifier,
) -> dict[str, Any]:
    """Build the persisted document (compacted points, rounded values)."""

    return {
        "schemaVersion": SCHEMA_VERSION,
        "trajectories": [serialize_trajectory(t, simplifier) for t in snapshot.trajectories],
        "clusters": [serialize_cluster(c) for c in snapshot.clusters],
        "totalDistanceMeters": round(snapshot.total_distance_m),
        "savedAtEpochMs": saved_at_ms,
    }


def _number(obj: Mapping[str, Any], key: str) -> float:
    value = obj[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    return value


def _list(obj: Mapping[str, Any], key: str) -> list[Any]:
    value = obj[key]
    if not isinstance(value, list):
        raise TypeError(f"{key} must be an array")
    return value


def _decode_trajectory(raw: Mapping[str, Any]) -> Trajectory:
    points = [
        TrackPoint(
            latitude=float(_number(p, "lat")),
            longitude=float(_number(p, "lng")),
            timestamp_ms=int(_number(p, "timestamp")),
            accuracy_m=float(_number(p, "accuracy")),
        )
        for p in _list(raw, "points")
    ]
    traj_id = raw["id"]
    if not isinstance(traj_id, str):
        raise TypeError("id must be a string")
    return Trajectory(
        id=traj_id,
        start_ms=int(_number(raw, "startTime")),
        points=points,
        # endTime is absent while a trajectory is live
        end_ms=int(_number(raw, "endTime")) if raw.get("endTime") is not None else None,
        distance_m=float(_number(raw, "distanceMeters")),
    )


def _decode_cluster(raw: Mapping[str, Any]) -> StayCluster:
    promoted = raw.get("promoted", False)
    if not isinstance(promoted, bool):
        raise TypeError(f"promoted must be a boolean, got {type(promoted).__name__}")
    return StayCluster(
        latitude=float(_number(raw, "lat")),
        longitude=float(_number(raw, "lng")),
        start_ms=int(_number(raw, "startTime")),
        end_ms=int(_number(raw, "endTime")),
        duration_ms=int(_number(raw, "durationMs")),
        promoted=promoted,
    )


def deserialize_snapshot(document: Any) -> Snapshot:
    """Decode a persisted document.

    Raises:
        CorruptSnapshotError: If required fields are missing or mistyped.
    """

    try:
        if not isinstance(document, dict):
            raise TypeError("snapshot must be a JSON object")
        version = document["schemaVersion"]
        if version != SCHEMA_VERSION:
            logger.warning("snapshot schema version %r differs from %r; loading as-is", version, SCHEMA_VERSION)
        return Snapshot(
            schema_version=str(version),
            trajectories=tuple(_decode_trajectory(t) for t in _list(document, "trajectories")),
            clusters=tuple(_decode_cluster(c) for c in _list(document, "clusters")),
            total_distance_m=float(_number(document, "totalDistanceMeters")),
            saved_at_ms=int(document.get("savedAtEpochMs") or 0),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise CorruptSnapshotError(f"invalid snapshot document: {exc}") from exc


def validate_import_document(document: Any) -> None:
    """Check the top-level shape of an import document.

    Raises:
        InvalidImportError: On the first problem found.
    """

    if not isinstance(document, dict):
        raise InvalidImportError("import document must be a JSON object")
    if not document.get("schemaVersion"):
        raise InvalidImportError("missing schemaVersion")
    for key in ("trajectories", "clusters"):
        if not isinstance(document.get(key), list):
            raise InvalidImportError(f"{key} must be an array")
    total = document.get("totalDistanceMeters")
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        raise InvalidImportError("totalDistanceMeters must be a number")


# ---------------------------------------------------------------------------
# backend


class JsonFileBackend:
    """Key -> JSON text, one file per key inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def read(self, key: str) -> str | None:
        p = self.path_for(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def read_bytes(self, key: str) -> bytes | None:
        p = self.path_for(key)
        if not p.exists():
            return None
        return p.read_bytes()

    def write(self, key: str, data: str | bytes) -> None:
        p = self.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_bytes(data.encode("utf-8") if isinstance(data, str) else data)
        tmp.replace(p)

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)

    def rename(self, src: str, dst: str) -> None:
        self.path_for(src).replace(self.path_for(dst))

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def size(self, key: str) -> int:
        p = self.path_for(key)
        return p.stat().st_size if p.exists() else 0


# ---------------------------------------------------------------------------
# store


@dataclass(frozen=True, slots=True)
class CommitResult:
    size_bytes: int
    evicted_ids: tuple[str, ...] = ()


class SnapshotStore:
    """Debounced, quota-checked persistence of trajectory history.

    ``commit`` coalesces calls arriving within the debounce window into a single
    write of the latest input. Writes that fail in the background are logged,
    kept in ``last_error`` and passed to ``on_error``; ``flush`` and
    ``commit_now`` raise them instead.
    """

    def __init__(
        self,
        directory: str | Path,
        config: TrackerConfig | None = None,
        *,
        simplifier: TrajectorySimplifier | None = None,
        now_ms: Callable[[], int] | None = None,
        timer_factory: TimerFactory = thread_timer,
        on_error: Callable[[PathMemoryError], None] | None = None,
    ) -> None:
        cfg = config or TrackerConfig()
        self.quota_bytes = cfg.quota_bytes
        self.retention_ms = cfg.retention_ms
        self._backend = JsonFileBackend(directory)
        self._simplifier = simplifier or TrajectorySimplifier(cfg)
        self._now_ms = now_ms or SystemClock()
        self.on_error = on_error
        self.last_error: PathMemoryError | None = None
        self._error_count = 0
        self._evicted: set[str] = set()
        # single writer around the durable blob
        self._blob_lock = threading.RLock()
        self._debouncer = Debouncer(self._background_commit, cfg.debounce_seconds, timer_factory)

    @property
    def backend(self) -> JsonFileBackend:
        return self._backend

    @property
    def evicted_ids(self) -> frozenset[str]:
        """Ids of trajectories dropped by quota eviction since this store was opened."""

        with self._blob_lock:
            return frozenset(self._evicted)

    @property
    def has_pending_commit(self) -> bool:
        return self._debouncer.pending

    # -- writing ------------------------------------------------------------

    def commit(self, snapshot: SnapshotInput) -> None:
        """Request a debounced write of ``snapshot``."""

        self._debouncer.call(snapshot)

    def flush(self) -> CommitResult | None:
        """Write any pending commit immediately.

        Raises:
            QuotaExceededError: If the pending snapshot does not fit.
            StoreWriteError: If the backend failed.
        """

        errors_before = self._error_count
        result = self._debouncer.flush()
        if self._error_count != errors_before and self.last_error is not None:
            raise self.last_error
        return result

    def cancel_pending(self) -> None:
        self._debouncer.cancel()

    def _background_commit(self, snapshot: SnapshotInput) -> CommitResult | None:
        try:
            return self.commit_now(snapshot)
        except PathMemoryError as exc:
            self._error_count += 1
            self.last_error = exc
            logger.error("snapshot commit failed: %s", exc)
            if self.on_error is not None:
                self.on_error(exc)
            return None

    def commit_now(self, snapshot: SnapshotInput) -> CommitResult:
        """Serialize and write ``snapshot`` synchronously.

        Over quota, trajectories that started before the retention window are
        evicted and the write is retried once.
        """

        now = self._now_ms()
        with self._blob_lock:
            document = serialize_snapshot(snapshot, now, self._simplifier)
            text = _encode(document)
            size = len(text.encode("utf-8"))
            evicted: tuple[str, ...] = ()

            if size > self.quota_bytes:
                cutoff = now - self.retention_ms
                kept = tuple(t for t in snapshot.trajectories if t.start_ms > cutoff)
                evicted = tuple(t.id for t in snapshot.trajectories if t.start_ms <= cutoff)
                logger.warning(
                    "snapshot is %d bytes (quota %d); evicting %d trajectories older than %d days",
                    size,
                    self.quota_bytes,
                    len(evicted),
                    self.retention_ms // 86_400_000,
                )
                retry = SnapshotInput(
                    trajectories=kept,
                    clusters=snapshot.clusters,
                    total_distance_m=snapshot.total_distance_m,
                )
                document = serialize_snapshot(retry, now, self._simplifier)
                text = _encode(document)
                size = len(text.encode("utf-8"))
                if size > self.quota_bytes:
                    raise QuotaExceededError(size, self.quota_bytes)

            self._write(PRIMARY_KEY, text)
            self._evicted.update(evicted)
            self.last_error = None
        logger.debug("committed snapshot: %d bytes, %d trajectories", size, len(document["trajectories"]))
        return CommitResult(size_bytes=size, evicted_ids=evicted)

    def _write(self, key: str, data: str | bytes) -> None:
        try:
            self._backend.write(key, data)
        except OSError as exc:
            raise StoreWriteError(f"failed to write {self._backend.path_for(key)}: {exc}") from exc

    # -- reading ------------------------------------------------------------

    def load(self) -> Snapshot | None:
        """Read the stored snapshot.

        Returns:
            The snapshot, or None if nothing is stored or the blob was corrupt. A
            corrupt blob is moved to the quarantine key, never deleted.
        """

        with self._blob_lock:
            raw = self._backend.read_bytes(PRIMARY_KEY)
            if raw is None or not raw.strip():
                return None
            try:
                try:
                    document = json.loads(raw.decode("utf-8"))
                except (ValueError, RecursionError) as exc:
                    # UnicodeDecodeError and JSONDecodeError are both ValueErrors
                    raise CorruptSnapshotError(f"malformed JSON: {exc}") from exc
                return deserialize_snapshot(document)
            except CorruptSnapshotError as exc:
                logger.warning("stored snapshot is corrupt (%s); quarantined as %s", exc, QUARANTINE_KEY)
                self._backend.rename(PRIMARY_KEY, QUARANTINE_KEY)
                return None

    def status(self) -> StoreStatus:
        """Report disk usage of the store.

        ``used_bytes`` counts the primary, backup and quarantine files, while the
        quota is enforced on the primary snapshot alone. Percentages above 100 are
        therefore possible while commits still succeed; clearing old backups or
        quarantined blobs brings the figure back down.
        """

        used = sum(self._backend.size(k) for k in (PRIMARY_KEY, BACKUP_KEY, QUARANTINE_KEY))
        return StoreStatus(used_bytes=used, quota_bytes=self.quota_bytes)

    # -- maintenance --------------------------------------------------------

    def _backup_current(self) -> None:
        # byte copy: the blob may not be valid UTF-8
        current = self._backend.read_bytes(PRIMARY_KEY)
        if current is not None:
            self._write(BACKUP_KEY, current)

    def clear(self) -> None:
        """Back up the current snapshot, then remove it. Pending commits are dropped."""

        self._debouncer.cancel()
        with self._blob_lock:
            self._backup_current()
            try:
                self._backend.remove(PRIMARY_KEY)
            except OSError as exc:
                raise StoreWriteError(f"failed to remove snapshot: {exc}") from exc
        logger.info("stored snapshot cleared (backup kept as %s)", BACKUP_KEY)

    def export_document(self, snapshot: SnapshotInput) -> dict[str, Any]:
        """Serialize for export; stored state is not touched."""

        now = self._now_ms()
        document = serialize_snapshot(snapshot, now, self._simplifier)
        document["exportedAt"] = iso_utc_from_epoch_ms(now)
        document["environment"] = environment_tag()
        return document

    def import_document(self, document: Any) -> Snapshot:
        """Replace the stored snapshot with ``document``.

        The document is validated completely before anything is written; the
        current snapshot is backed up first.

        Raises:
            InvalidImportError: If the document is rejected. Storage is unchanged.
        """

        if isinstance(document, (str, bytes)):
            try:
                if isinstance(document, bytes):
                    document = document.decode("utf-8")
                document = json.loads(document)
            except (ValueError, RecursionError) as exc:
                raise InvalidImportError(f"import is not valid JSON: {exc}") from exc
        validate_import_document(document)
        try:
            snapshot = deserialize_snapshot(document)
        except CorruptSnapshotError as exc:
            raise InvalidImportError(str(exc)) from exc

        self._debouncer.cancel()
        with self._blob_lock:
            self._backup_current()
            self._write(PRIMARY_KEY, _encode(document))
        logger.info(
            "imported %d trajectories and %d stays", len(snapshot.trajectories), len(snapshot.clusters)
        )
        return snapshot


def environment_tag() -> str:
    return f"path-memory ({platform.system()} {platform.release()}; Python {platform.python_version()})"
