"""Douglas-Peucker path simplification applied before persistence."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence, TypeVar

from path_memory.config import TrackerConfig
from path_memory.geo import point_to_segment_deg
from path_memory.models import TrackPoint, Trajectory

P = TypeVar("P", bound=TrackPoint)


def douglas_peucker(points: Sequence[P], tolerance: float) -> list[P]:
    """Simplify a polyline with an explicit work stack.

    Distance is planar over raw lat/lon degrees. Each range is examined once and
    split at its farthest interior point while that point deviates more than
    ``tolerance`` from the chord; otherwise only the range endpoints survive.

    Args:
        points: Ordered points.
        tolerance: Maximum deviation (degrees) a dropped point may have.

    Returns:
        Simplified points. Endpoints are always kept; never longer than input.
    """

    n = len(points)
    if n <= 2:
        return list(points)

    keep = [False] * n
    keep[0] = keep[n - 1] = True
    stack: list[tuple[int, int]] = [(0, n - 1)]

    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        a = points[first]
        b = points[last]
        max_dist = 0.0
        max_idx = first
        for i in range(first + 1, last):
            p = points[i]
            d = point_to_segment_deg(p.latitude, p.longitude, a.latitude, a.longitude, b.latitude, b.longitude)
            if d > max_dist:
                max_dist = d
                max_idx = i
        if max_dist > tolerance:
            keep[max_idx] = True
            stack.append((max_idx, last))
            stack.append((first, max_idx))

    return [p for p, k in zip(points, keep) if k]


class TrajectorySimplifier:
    """Compacts finished trajectories; short ones pass through unchanged."""

    def __init__(self, config: TrackerConfig | None = None) -> None:
        cfg = config or TrackerConfig()
        self.tolerance = cfg.simplify_tolerance_deg
        self.min_points = cfg.simplify_min_points

    def simplify_points(self, points: Sequence[TrackPoint]) -> list[TrackPoint]:
        if len(points) < self.min_points:
            return list(points)
        return douglas_peucker(points, self.tolerance)

    def simplify(self, trajectory: Trajectory) -> Trajectory:
        """Return a copy with simplified points; distance is left as measured."""

        return replace(trajectory, points=self.simplify_points(trajectory.points))
