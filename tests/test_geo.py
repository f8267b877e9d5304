from __future__ import annotations

import pytest

from path_memory.geo import haversine_m, is_inside_circle, point_to_segment_deg


def test_haversine_zero_and_symmetric():
    assert haversine_m(37.5665, 126.978, 37.5665, 126.978) == 0.0
    a = haversine_m(37.5665, 126.978, 37.5675, 126.979)
    b = haversine_m(37.5675, 126.979, 37.5665, 126.978)
    assert a == pytest.approx(b)


def test_haversine_one_degree_of_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(111_195, rel=1e-4)


def test_haversine_seoul_to_busan():
    # roughly 325 km
    assert haversine_m(37.5665, 126.9780, 35.1796, 129.0756) == pytest.approx(325_000, rel=0.02)


def test_is_inside_circle_boundary():
    d = haversine_m(0.0, 0.0, 0.0001, 0.0)
    assert is_inside_circle(0.0001, 0.0, 0.0, 0.0, d)
    assert not is_inside_circle(0.0001, 0.0, 0.0, 0.0, d - 0.01)


def test_point_to_segment_perpendicular():
    assert point_to_segment_deg(1.0, 1.0, 0.0, 0.0, 0.0, 2.0) == pytest.approx(1.0)


def test_point_to_segment_clamps_to_endpoints():
    # beyond the end of the segment: distance to the end point
    assert point_to_segment_deg(0.0, 3.0, 0.0, 0.0, 0.0, 2.0) == pytest.approx(1.0)
    # before the start
    assert point_to_segment_deg(0.0, -2.0, 0.0, 0.0, 0.0, 2.0) == pytest.approx(2.0)


def test_point_to_segment_zero_length():
    assert point_to_segment_deg(3.0, 4.0, 0.0, 0.0, 0.0, 0.0) == pytest.approx(5.0)
