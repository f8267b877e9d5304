"""Clocks consumed by the session: wall clock and a settable simulation clock."""

from __future__ import annotations

import time


class SystemClock:
    """Wall-clock time in epoch milliseconds."""

    def __call__(self) -> int:
        return int(time.time() * 1000)


class SimulationClock:
    """Clock that only moves when told to.

    Used to replay recorded fixes at their own timestamps and to fast-forward
    "now" when previewing how memories age. ``advance`` scales by ``speed``.
    """

    def __init__(self, start_ms: int = 0, speed: float = 1.0) -> None:
        if speed <= 0:
            raise ValueError("speed must be positive")
        self._now_ms = int(start_ms)
        self.speed = float(speed)

    def __call__(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        """Jump to ``now_ms``; going backwards is ignored."""

        self._now_ms = max(self._now_ms, int(now_ms))

    def advance(self, real_ms: float) -> int:
        self._now_ms += int(real_ms * self.speed)
        return self._now_ms
