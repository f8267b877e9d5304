"""CSV input for recorded fixes (phone location-export format)."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from path_memory.models import Fix

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("geoTime", "latitude", "longitude")


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_float(value: str) -> float:
    return float(value.strip())


def _row_to_fix(row: dict[str, str]) -> Fix:
    speed = _parse_float(row.get("speed", "") or "-1")
    accuracy = _parse_float(row.get("horizontalAccuracy", "") or "-1")
    return Fix(
        latitude=_parse_float(row["latitude"]),
        longitude=_parse_float(row["longitude"]),
        # -1 means "unknown"; treat as perfect so the accuracy gate does not drop it
        accuracy_m=accuracy if accuracy >= 0 else 0.0,
        timestamp_ms=_parse_int(row["geoTime"]),
        speed_mps=speed if speed >= 0 else None,
    )


def load_fixes(csv_path: str | Path) -> tuple[list[Fix], CsvSummary]:
    """Load all fixes into memory, sorted by time.

    Args:
        csv_path: Path to the exported CSV.

    Returns:
        (fixes, summary)

    Raises:
        KeyError: If a required column is missing.

    Notes:
        The export uses these columns (observed):
          - geoTime: epoch milliseconds
          - latitude/longitude: decimal degrees
          - speed/horizontalAccuracy: -1.0 when unknown
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[Fix] = []
    fieldnames: Sequence[str] = ()

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        missing = [c for c in REQUIRED_COLUMNS if c not in fieldnames]
        if fieldnames and missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_row_to_fix(row))
            except (ValueError, TypeError, AttributeError):
                # 某些行可能损坏/空行，直接跳过
                continue

    parsed.sort(key=lambda fx: fx.timestamp_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("skipped %s unparseable CSV rows", summary.rows_skipped)
    return parsed, summary
