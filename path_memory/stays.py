"""Stay detection: incremental clustering of fixes into places the subject lingered."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Union

from path_memory.config import TrackerConfig
from path_memory.geo import is_inside_circle
from path_memory.models import Fix, StayCluster
from path_memory.timeutils import dt_from_epoch_ms, format_hhmmss

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClusterCreated:
    cluster: StayCluster


@dataclass(frozen=True, slots=True)
class ClusterUpdated:
    cluster: StayCluster
    # True only on the observation that promoted the cluster
    promoted_now: bool = False


ClusterEvent = Union[ClusterCreated, ClusterUpdated]


class StayClusterDetector:
    """Linear-scan stay clustering.

    Clusters are kept in discovery order. A fix joins the first cluster found when
    scanning from newest to oldest whose centroid lies within the stay radius; this
    is first match in scan order, not nearest centroid, so an older cluster can win
    over a closer one created later if the newer one is out of range.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        clusters: Iterable[StayCluster] = (),
    ) -> None:
        cfg = config or TrackerConfig()
        self._radius_m = cfg.stay_radius_m
        self._threshold_ms = cfg.stay_threshold_ms
        self._clusters: list[StayCluster] = list(clusters)

    @property
    def clusters(self) -> Sequence[StayCluster]:
        return tuple(self._clusters)

    def promoted(self) -> list[StayCluster]:
        return [c for c in self._clusters if c.promoted]

    def observe(self, fix: Fix) -> ClusterEvent:
        for cluster in reversed(self._clusters):
            if not is_inside_circle(fix.latitude, fix.longitude, cluster.latitude, cluster.longitude, self._radius_m):
                continue
            # max() keeps duration non-decreasing if fixes arrive out of order
            cluster.end_ms = max(cluster.end_ms, fix.timestamp_ms)
            cluster.duration_ms = cluster.end_ms - cluster.start_ms
            promoted_now = False
            if not cluster.promoted and cluster.duration_ms >= self._threshold_ms:
                cluster.promoted = True
                promoted_now = True
                logger.info(
                    "stay promoted at %.6f,%.6f after %s",
                    cluster.latitude,
                    cluster.longitude,
                    format_hhmmss(cluster.duration_seconds),
                )
            return ClusterUpdated(cluster, promoted_now=promoted_now)

        cluster = StayCluster(
            latitude=fix.latitude,
            longitude=fix.longitude,
            start_ms=fix.timestamp_ms,
            end_ms=fix.timestamp_ms,
        )
        self._clusters.append(cluster)
        return ClusterCreated(cluster)

    def reset(self, clusters: Iterable[StayCluster] = ()) -> None:
        self._clusters = list(clusters)


def write_stays_csv(clusters: Sequence[StayCluster], out_path: str | Path, tz_name: str) -> None:
    """Write stay clusters to CSV for review."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "stay_id",
                "latitude",
                "longitude",
                "start_time",
                "end_time",
                "duration_seconds",
                "duration_hhmmss",
                "promoted",
                "start_epoch_ms",
                "end_epoch_ms",
            ],
        )
        w.writeheader()
        for i, c in enumerate(clusters, start=1):
            w.writerow(
                {
                    "stay_id": i,
                    "latitude": f"{c.latitude:.6f}",
                    "longitude": f"{c.longitude:.6f}",
                    "start_time": dt_from_epoch_ms(c.start_ms, tz_name).isoformat(sep=" "),
                    "end_time": dt_from_epoch_ms(c.end_ms, tz_name).isoformat(sep=" "),
                    "duration_seconds": f"{c.duration_seconds:.3f}",
                    "duration_hhmmss": format_hhmmss(c.duration_seconds),
                    "promoted": int(c.promoted),
                    "start_epoch_ms": c.start_ms,
                    "end_epoch_ms": c.end_ms,
                }
            )
