"""Time-based colour/opacity for drawing trajectories.

Memories fade with age: a route is white for the first ten hours (fading from
full to 40% opacity), then green, orange, red and finally brown.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

FADE_SECONDS: Final[int] = 36_000  # 10 hours


@dataclass(frozen=True, slots=True)
class MemoryStage:
    name: str
    threshold_s: float
    color: str
    opacity: float


MEMORY_STAGES: Final[tuple[MemoryStage, ...]] = (
    MemoryStage("fresh", FADE_SECONDS, "#FFFFFF", 1.0),
    MemoryStage("recent", 50_400, "#32CD32", 0.4),  # 14 hours
    MemoryStage("week", 604_800, "#FFA500", 0.4),  # 7 days
    MemoryStage("month", 2_592_000, "#FF0000", 0.4),  # 30 days
    MemoryStage("permanent", math.inf, "#8B4513", 0.4),
)


@dataclass(frozen=True, slots=True)
class MemoryStyle:
    stage: str
    color: str
    opacity: float


def memory_style(start_ms: int, now_ms: int) -> MemoryStyle:
    """Map the age of a trajectory to its display colour and opacity."""

    elapsed = max(0.0, (now_ms - start_ms) / 1000.0)
    for stage in MEMORY_STAGES:
        if elapsed < stage.threshold_s:
            opacity = stage.opacity
            if stage.threshold_s == FADE_SECONDS:
                opacity = 1.0 - 0.6 * (elapsed / FADE_SECONDS)
            return MemoryStyle(stage=stage.name, color=stage.color, opacity=opacity)
    last = MEMORY_STAGES[-1]
    return MemoryStyle(stage=last.name, color=last.color, opacity=last.opacity)
