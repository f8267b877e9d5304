"""Tunable parameters for tracking, clustering and persistence."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

MIB = 1024 * 1024


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Parameters shared by the tracking components.

    Every component takes its own values from here so that nothing is looked up
    globally.
    """

    # Accuracy gate: looser while the receiver is still acquiring a lock.
    cold_start_accuracy_m: float = 200.0
    steady_accuracy_m: float = 100.0
    cold_start_fixes: int = 5
    # ~200 km/h
    max_speed_mps: float = 55.6

    stay_radius_m: float = 50.0
    stay_threshold_ms: int = 3_600_000

    simplify_tolerance_deg: float = 0.00001
    simplify_min_points: int = 10

    quota_bytes: int = 5 * MIB
    debounce_seconds: float = 1.0
    autosave_interval_seconds: float = 5.0
    retention_days: int = 30

    position_timeout_seconds: float = 15.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> TrackerConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""

        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(mapping) - set(known))
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(unknown)}")
        values: dict[str, Any] = {}
        for key, raw in mapping.items():
            default = known[key].default
            try:
                values[key] = type(default)(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid value for {key!r}: {raw!r}") from exc
        return cls(**values)

    @property
    def retention_ms(self) -> int:
        return self.retention_days * 24 * 60 * 60 * 1000


def load_config(path: str | Path) -> TrackerConfig:
    """Read a JSON object of overrides and merge it onto the defaults."""

    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config file {p} must contain a JSON object")
    return TrackerConfig.from_mapping(data)
