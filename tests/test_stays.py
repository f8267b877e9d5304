from __future__ import annotations

import csv

from path_memory.config import TrackerConfig
from path_memory.stays import ClusterCreated, ClusterUpdated, StayClusterDetector, write_stays_csv

from conftest import METERS_PER_DEG_LAT, T0

BASE_LAT, BASE_LON = 37.5665, 126.9780


def _north(meters: float) -> float:
    return BASE_LAT + meters / METERS_PER_DEG_LAT


def test_first_fix_creates_cluster(make_fix):
    det = StayClusterDetector(TrackerConfig())
    event = det.observe(make_fix(BASE_LAT, BASE_LON, t_s=0))
    assert isinstance(event, ClusterCreated)
    c = event.cluster
    assert (c.latitude, c.longitude) == (BASE_LAT, BASE_LON)
    assert c.start_ms == c.end_ms == T0
    assert c.duration_ms == 0 and not c.promoted


def test_nearby_fix_updates_without_moving_centroid(make_fix):
    det = StayClusterDetector(TrackerConfig())
    det.observe(make_fix(BASE_LAT, BASE_LON, t_s=0))
    event = det.observe(make_fix(_north(30), BASE_LON, t_s=600))
    assert isinstance(event, ClusterUpdated)
    assert event.cluster.duration_ms == 600_000
    assert event.cluster.latitude == BASE_LAT
    assert len(det.clusters) == 1


def test_distant_fix_creates_second_cluster(make_fix):
    det = StayClusterDetector(TrackerConfig())
    det.observe(make_fix(BASE_LAT, BASE_LON, t_s=0))
    event = det.observe(make_fix(_north(80), BASE_LON, t_s=60))
    assert isinstance(event, ClusterCreated)
    assert len(det.clusters) == 2


def test_promotion_happens_exactly_once(make_fix):
    det = StayClusterDetector(TrackerConfig())
    promoted_at = []
    durations = []
    for minute in range(0, 121, 10):
        event = det.observe(make_fix(BASE_LAT, BASE_LON, t_s=minute * 60))
        durations.append(event.cluster.duration_ms)
        if isinstance(event, ClusterUpdated) and event.promoted_now:
            promoted_at.append(minute)

    assert promoted_at == [60]
    assert durations == sorted(durations)
    assert det.promoted()[0].duration_ms == 120 * 60_000


def test_promotion_just_below_threshold(make_fix):
    det = StayClusterDetector(TrackerConfig())
    det.observe(make_fix(t_s=0))
    event = det.observe(make_fix(t_s=3599))
    assert not event.cluster.promoted
    event = det.observe(make_fix(t_s=3600))
    assert event.promoted_now and event.cluster.promoted


def test_match_is_first_in_scan_order_not_nearest(make_fix):
    det = StayClusterDetector(TrackerConfig())
    det.observe(make_fix(BASE_LAT, BASE_LON, t_s=0))  # A
    det.observe(make_fix(_north(55), BASE_LON, t_s=60))  # B, newer

    # 10 m from A, 45 m from B: the newer cluster B is scanned first and wins
    event = det.observe(make_fix(_north(10), BASE_LON, t_s=120))
    a, b = det.clusters
    assert event.cluster is b
    assert b.end_ms == T0 + 120_000
    assert a.end_ms == T0


def test_out_of_order_fix_does_not_shrink_duration(make_fix):
    det = StayClusterDetector(TrackerConfig())
    det.observe(make_fix(t_s=0))
    det.observe(make_fix(t_s=600))
    event = det.observe(make_fix(t_s=300))
    assert event.cluster.duration_ms == 600_000


def test_write_stays_csv(tmp_path, make_fix):
    det = StayClusterDetector(TrackerConfig())
    for minute in range(0, 70, 10):
        det.observe(make_fix(t_s=minute * 60))
    out = tmp_path / "stays.csv"
    write_stays_csv(det.clusters, out, "Asia/Seoul")

    with out.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 1
    assert rows[0]["duration_hhmmss"] == "01:00:00"
    assert rows[0]["promoted"] == "1"
    assert rows[0]["start_time"].startswith("2025-01-01 09:00:00")
