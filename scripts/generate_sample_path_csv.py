from __future__ import annotations

import argparse
import csv
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Seoul"


@dataclass(frozen=True, slots=True)
class Place:
    name: str
    lat: float
    lon: float


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _walk(rng: random.Random, src: Place, dst: Place, steps: int) -> list[tuple[float, float]]:
    """Straight-ish walk between two places with a little GPS jitter."""

    out: list[tuple[float, float]] = []
    for i in range(1, steps + 1):
        t = i / steps
        lat = src.lat + (dst.lat - src.lat) * t + rng.gauss(0, 0.00002)
        lon = src.lon + (dst.lon - src.lon) * t + rng.gauss(0, 0.00002)
        out.append((lat, lon))
    return out


def generate_fixes(
    *,
    seed: int,
    start_local: datetime,
    places: list[Place],
    stay_minutes: float,
) -> list[dict[str, str]]:
    """Generate fake location-export rows: walks between places with long stays and some noise."""

    rng = random.Random(seed)
    cur = start_local.replace(tzinfo=ZoneInfo(TZ))
    out: list[dict[str, str]] = []

    def emit(lat: float, lon: float, hacc: float, speed: float) -> None:
        out.append(
            {
                "geoTime": str(_epoch_ms(cur)),
                "latitude": f"{lat:.7f}",
                "longitude": f"{lon:.7f}",
                "horizontalAccuracy": f"{hacc:.1f}",
                "speed": f"{speed:.1f}",
            }
        )

    for src, dst in zip(places, places[1:]):
        # linger at src, one fix a minute
        for _ in range(int(stay_minutes)):
            cur += timedelta(seconds=60)
            emit(src.lat + rng.gauss(0, 0.00005), src.lon + rng.gauss(0, 0.00005), rng.choice([5.0, 8.0, 12.0]), 0.0)

        dist_deg = math.hypot(dst.lat - src.lat, dst.lon - src.lon)
        steps = max(5, int(dist_deg / 0.0002))
        for lat, lon in _walk(rng, src, dst, steps):
            cur += timedelta(seconds=15)
            if rng.random() < 0.05:
                # poor-accuracy outlier the filter should drop
                emit(lat + 0.01, lon + 0.01, 350.0, -1.0)
                continue
            emit(lat, lon, rng.choice([4.0, 6.0, 10.0, 20.0]), rng.uniform(1.0, 1.8))

    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake Path.csv for replay demos (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/Path.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--stay-minutes", type=float, default=75.0, help="Minutes spent at each place")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-01 08:00:00",
        help="Start local time in Asia/Seoul, e.g. '2025-01-01 08:00:00'",
    )
    args = p.parse_args()

    places = [
        Place("home", 37.5665000, 126.9780000),
        Place("office", 37.5700000, 126.9820000),
        Place("cafe", 37.5680000, 126.9850000),
        Place("home", 37.5665000, 126.9780000),
    ]
    rows = generate_fixes(
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        places=places,
        stay_minutes=args.stay_minutes,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    fieldnames = ["geoTime", "latitude", "longitude", "horizontalAccuracy", "speed"]
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
