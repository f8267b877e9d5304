from __future__ import annotations

import math
import random

import pytest

from path_memory.config import TrackerConfig
from path_memory.models import TrackPoint, Trajectory
from path_memory.simplify import TrajectorySimplifier, douglas_peucker

from conftest import T0

TOL = 0.00001


def _pts(coords):
    return [TrackPoint(latitude=lat, longitude=lon, timestamp_ms=T0 + i * 1000, accuracy_m=5.0) for i, (lat, lon) in enumerate(coords)]


def test_two_points_is_noop():
    pts = _pts([(37.0, 127.0), (37.1, 127.1)])
    assert douglas_peucker(pts, TOL) == pts


def test_single_point_stays():
    pts = _pts([(37.0, 127.0)])
    assert douglas_peucker(pts, TOL) == pts
    assert douglas_peucker([], TOL) == []


def test_collinear_collapses_to_endpoints():
    pts = _pts([(37.0 + i * 0.001, 127.0 + i * 0.001) for i in range(50)])
    out = douglas_peucker(pts, TOL)
    assert out == [pts[0], pts[-1]]


def test_corner_is_kept():
    coords = [(37.0, 127.0 + i * 0.001) for i in range(10)] + [(37.0 + i * 0.001, 127.009) for i in range(1, 10)]
    pts = _pts(coords)
    out = douglas_peucker(pts, TOL)
    assert out == [pts[0], pts[9], pts[-1]]


def test_deviation_below_tolerance_is_dropped():
    pts = _pts([(37.0, 127.0), (37.000005, 127.0005), (37.0, 127.001)])
    assert douglas_peucker(pts, TOL) == [pts[0], pts[-1]]
    pts = _pts([(37.0, 127.0), (37.00005, 127.0005), (37.0, 127.001)])
    assert douglas_peucker(pts, TOL) == pts


@pytest.mark.parametrize("seed", range(5))
def test_endpoints_preserved_and_length_bounded(seed):
    rng = random.Random(seed)
    lat, lon = 37.5, 127.0
    coords = []
    for _ in range(rng.randint(3, 400)):
        lat += rng.uniform(-0.0002, 0.0002)
        lon += rng.uniform(-0.0002, 0.0002)
        coords.append((lat, lon))
    pts = _pts(coords)
    out = douglas_peucker(pts, TOL)
    assert out[0] is pts[0] and out[-1] is pts[-1]
    assert 2 <= len(out) <= len(pts)
    # order is preserved
    assert [p.timestamp_ms for p in out] == sorted(p.timestamp_ms for p in out)


def test_long_curved_input_does_not_hit_recursion_limit():
    # points on a convex arc: every interior point matters, the split depth is large
    n = 20_000
    coords = [(math.exp(i / 2000.0) * 0.001, i * 0.0001) for i in range(n)]
    out = douglas_peucker(_pts(coords), 1e-12)
    assert len(out) <= n
    assert out[0].timestamp_ms == T0 and out[-1].timestamp_ms == T0 + (n - 1) * 1000


def test_simplifier_skips_short_trajectories():
    simplifier = TrajectorySimplifier(TrackerConfig())
    pts = _pts([(37.0 + i * 0.001, 127.0) for i in range(9)])
    assert simplifier.simplify_points(pts) == pts
    pts = _pts([(37.0 + i * 0.001, 127.0) for i in range(10)])
    assert len(simplifier.simplify_points(pts)) == 2


def test_simplify_trajectory_keeps_measured_distance():
    simplifier = TrajectorySimplifier(TrackerConfig())
    traj = Trajectory(id="x", start_ms=T0, points=_pts([(37.0 + i * 0.001, 127.0) for i in range(12)]), distance_m=1234.5)
    out = simplifier.simplify(traj)
    assert len(out.points) == 2
    assert out.distance_m == 1234.5
    assert len(traj.points) == 12
