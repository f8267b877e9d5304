from __future__ import annotations

import random

import pytest

from path_memory.accumulator import AccumulatorState, TrajectoryAccumulator, new_trajectory_id
from path_memory.errors import SessionStateError
from path_memory.geo import haversine_m

from conftest import T0


def test_lifecycle(clock, make_fix):
    acc = TrajectoryAccumulator(now_ms=clock, id_factory=lambda now: f"t{now}")
    assert acc.state is AccumulatorState.IDLE

    traj = acc.start()
    assert traj.id == f"t{T0}"
    assert traj.start_ms == T0
    assert acc.is_live and acc.current is traj

    acc.append(make_fix(37.5665, 126.9780, t_s=0))
    acc.append(make_fix(37.5670, 126.9785, t_s=10))
    acc.append(make_fix(37.5675, 126.9790, t_s=20))
    clock.set(T0 + 30_000)

    done = acc.finalize()
    assert done is traj
    assert done.end_ms == T0 + 30_000
    assert len(done.points) == 3
    assert 100 < done.distance_m < 200
    assert acc.state is AccumulatorState.FINALIZED
    assert acc.current is None


def test_distance_is_sum_of_segments(clock, make_fix):
    rng = random.Random(7)
    acc = TrajectoryAccumulator(now_ms=clock)
    acc.start()
    lat, lon = 37.5, 127.0
    for i in range(200):
        lat += rng.uniform(-0.0005, 0.0005)
        lon += rng.uniform(-0.0005, 0.0005)
        acc.append(make_fix(lat, lon, t_s=i))

    pts = acc.current.points
    expected = sum(
        haversine_m(a.latitude, a.longitude, b.latitude, b.longitude) for a, b in zip(pts, pts[1:])
    )
    assert acc.current.distance_m == pytest.approx(expected, rel=1e-12)


def test_distance_never_decreases(clock, make_fix):
    acc = TrajectoryAccumulator(now_ms=clock)
    acc.start()
    last = 0.0
    for i, lat in enumerate([37.0, 37.001, 37.0, 37.0, 37.002]):
        acc.append(make_fix(lat, 127.0, t_s=i * 60))
        assert acc.current.distance_m >= last
        last = acc.current.distance_m


def test_single_point_trajectory_is_discarded(clock, make_fix):
    acc = TrajectoryAccumulator(now_ms=clock)
    acc.start()
    acc.append(make_fix())
    assert acc.finalize() is None
    assert acc.state is AccumulatorState.FINALIZED


def test_illegal_transitions(clock, make_fix):
    acc = TrajectoryAccumulator(now_ms=clock)
    with pytest.raises(SessionStateError):
        acc.append(make_fix())
    with pytest.raises(SessionStateError):
        acc.finalize()
    acc.start()
    with pytest.raises(SessionStateError):
        acc.start()
    acc.finalize()
    with pytest.raises(SessionStateError):
        acc.append(make_fix())
    # a new session may follow a finalized one
    acc.start()
    assert acc.is_live


def test_trajectory_ids_are_unique():
    ids = {new_trajectory_id(T0) for _ in range(100)}
    assert len(ids) == 100
