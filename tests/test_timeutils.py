from __future__ import annotations

import pytest

from path_memory.clock import SimulationClock
from path_memory.timeutils import (
    dt_from_epoch_ms,
    epoch_ms_from_dt,
    format_clock,
    format_distance,
    format_hhmmss,
    iso_utc_from_epoch_ms,
    parse_dt,
    tzinfo_from_name,
)

from conftest import T0


@pytest.mark.parametrize(
    ("meters", "text"),
    [(0, "0m"), (850.4, "850m"), (999, "999m"), (1000, "1.0km"), (1234, "1.2km"), (15_000, "15.0km")],
)
def test_format_distance(meters, text):
    assert format_distance(meters) == text


@pytest.mark.parametrize(
    ("seconds", "text"),
    [(0, "00:00"), (65, "01:05"), (3599, "59:59"), (3600, "1:00:00"), (37_230, "10:20:30"), (-5, "00:00")],
)
def test_format_clock(seconds, text):
    assert format_clock(seconds) == text


def test_format_hhmmss():
    assert format_hhmmss(3661.4) == "01:01:01"


def test_epoch_round_trip_in_seoul():
    dt = dt_from_epoch_ms(T0, "Asia/Seoul")
    assert dt.hour == 9
    assert epoch_ms_from_dt(dt) == T0
    assert iso_utc_from_epoch_ms(T0) == "2025-01-01T00:00:00Z"


def test_parse_dt_assumes_given_zone():
    assert epoch_ms_from_dt(parse_dt("2025-01-01 09:00:00", "Asia/Seoul")) == T0
    assert epoch_ms_from_dt(parse_dt("2025-01-01T00:00:00+00:00", "Asia/Seoul")) == T0
    with pytest.raises(ValueError, match="无法解析时间"):
        parse_dt("yesterday", "Asia/Seoul")


def test_invalid_timezone():
    with pytest.raises(ValueError):
        tzinfo_from_name("Mars/Olympus")
    with pytest.raises(ValueError, match="无效时区"):
        dt_from_epoch_ms(T0, "Mars/Olympus")


def test_simulation_clock():
    clock = SimulationClock(start_ms=T0, speed=60.0)
    assert clock() == T0
    assert clock.advance(1000) == T0 + 60_000
    clock.set(T0)
    assert clock() == T0 + 60_000
    clock.set(T0 + 120_000)
    assert clock() == T0 + 120_000
    with pytest.raises(ValueError):
        SimulationClock(speed=0)
