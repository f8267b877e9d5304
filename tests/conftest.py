from __future__ import annotations

from typing import Callable

import pytest

from path_memory.clock import SimulationClock
from path_memory.config import TrackerConfig
from path_memory.models import Fix
from path_memory.store import SnapshotStore

# 2025-01-01 00:00:00 UTC
T0 = 1_735_689_600_000
METERS_PER_DEG_LAT = 111_194.93


class FakeTimer:
    def __init__(self, interval: float, fn: Callable[[], None]) -> None:
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled

    def fire(self) -> None:
        self.cancelled = True
        self.fn()


class FakeTimers:
    """Timer factory that only fires when the test says so."""

    def __init__(self) -> None:
        self.created: list[FakeTimer] = []

    def __call__(self, interval: float, fn: Callable[[], None]) -> FakeTimer:
        t = FakeTimer(interval, fn)
        self.created.append(t)
        return t

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.created if t.active]

    def fire_all(self) -> int:
        fired = 0
        for t in list(self.created):
            if t.active:
                t.fire()
                fired += 1
        return fired


@pytest.fixture
def fake_timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def clock() -> SimulationClock:
    return SimulationClock(start_ms=T0)


@pytest.fixture
def config() -> TrackerConfig:
    return TrackerConfig()


@pytest.fixture
def store(tmp_path, config, clock, fake_timers) -> SnapshotStore:
    return SnapshotStore(tmp_path / "store", config, now_ms=clock, timer_factory=fake_timers)


@pytest.fixture
def make_fix() -> Callable[..., Fix]:
    def _make(
        lat: float = 37.5665,
        lon: float = 126.9780,
        *,
        t_s: float = 0.0,
        accuracy: float = 10.0,
        speed: float | None = None,
    ) -> Fix:
        return Fix(
            latitude=lat,
            longitude=lon,
            accuracy_m=accuracy,
            timestamp_ms=T0 + int(t_s * 1000),
            speed_mps=speed,
        )

    return _make
