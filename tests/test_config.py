from __future__ import annotations

import json

import pytest

from path_memory.config import TrackerConfig, load_config


def test_defaults():
    cfg = TrackerConfig()
    assert cfg.cold_start_accuracy_m == 200.0
    assert cfg.steady_accuracy_m == 100.0
    assert cfg.max_speed_mps == 55.6
    assert cfg.stay_radius_m == 50.0
    assert cfg.stay_threshold_ms == 3_600_000
    assert cfg.quota_bytes == 5 * 1024 * 1024
    assert cfg.retention_ms == 30 * 86_400_000


def test_from_mapping_coerces_values():
    cfg = TrackerConfig.from_mapping({"stay_radius_m": 75, "quota_bytes": "2048"})
    assert cfg.stay_radius_m == 75.0 and isinstance(cfg.stay_radius_m, float)
    assert cfg.quota_bytes == 2048


def test_from_mapping_rejects_unknown_keys():
    with pytest.raises(ValueError, match="unknown config keys: radius"):
        TrackerConfig.from_mapping({"radius": 10})


def test_from_mapping_rejects_bad_values():
    with pytest.raises(ValueError, match="quota_bytes"):
        TrackerConfig.from_mapping({"quota_bytes": "lots"})


def test_load_config(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"retention_days": 7}), encoding="utf-8")
    assert load_config(p).retention_days == 7

    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(p)
