"""Command-line interface for path_memory.

Run:
    python -m path_memory replay --csv Path.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Callable

from path_memory.clock import SimulationClock, SystemClock
from path_memory.config import TrackerConfig, load_config
from path_memory.csv_io import load_fixes
from path_memory.display import memory_style
from path_memory.errors import InvalidImportError, PathMemoryError
from path_memory.filtering import Reject
from path_memory.models import DEFAULT_TZ, Fix, SnapshotInput, StayCluster, Trajectory
from path_memory.sensors import QueueFixSource
from path_memory.session import SessionObserver, TrackingSession
from path_memory.stays import write_stays_csv
from path_memory.store import SnapshotStore
from path_memory.timeutils import dt_from_epoch_ms, epoch_ms_from_dt, format_clock, format_distance, parse_dt

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "path_memory_data"


class _ReplaySummary(SessionObserver):
    """Counts what happened during a replay without keeping every fix."""

    def __init__(self) -> None:
        self.accepted = 0
        self.rejected: Counter[str] = Counter()
        self.promoted: list[StayCluster] = []
        self.finished: list[Trajectory] = []
        self.discarded = 0

    def on_accepted(self, fix: Fix) -> None:
        self.accepted += 1

    def on_rejected(self, rejection: Reject) -> None:
        self.rejected[type(rejection.reason).__name__] += 1

    def on_cluster_promoted(self, cluster: StayCluster) -> None:
        self.promoted.append(cluster)

    def on_session_stop(self, trajectory: Trajectory | None) -> None:
        if trajectory is None:
            self.discarded += 1
        else:
            self.finished.append(trajectory)


def _config_from_args(args: argparse.Namespace) -> TrackerConfig:
    config = load_config(args.config) if getattr(args, "config", None) else TrackerConfig()
    overrides = {
        key: getattr(args, key)
        for key in ("stay_radius_m", "quota_bytes", "retention_days")
        if getattr(args, key, None) is not None
    }
    return replace(config, **overrides) if overrides else config


def _open_store(
    args: argparse.Namespace,
    config: TrackerConfig,
    now_ms: Callable[[], int] | None = None,
) -> SnapshotStore:
    return SnapshotStore(args.store, config, now_ms=now_ms)


def _loaded_input(store: SnapshotStore) -> SnapshotInput:
    snapshot = store.load()
    if snapshot is None:
        return SnapshotInput(trajectories=(), clusters=(), total_distance_m=0.0)
    return SnapshotInput(
        trajectories=snapshot.trajectories,
        clusters=snapshot.clusters,
        total_distance_m=snapshot.total_distance_m,
    )


def _cmd_replay(args: argparse.Namespace) -> int:
    fixes, summary = load_fixes(args.csv)
    if not fixes:
        print(f"No fixes could be parsed from {args.csv}.", file=sys.stderr)
        return 1

    config = _config_from_args(args)
    clock = SimulationClock(start_ms=fixes[0].timestamp_ms)
    store = _open_store(args, config, now_ms=clock)
    source = QueueFixSource()
    observer = _ReplaySummary()
    session = TrackingSession(source, store, config, observer=observer, now_ms=clock)
    session.restore()

    gap_ms = int(args.session_gap_minutes * 60_000)
    previous: Fix | None = None
    session.start()
    for fix in fixes:
        if previous is not None and fix.timestamp_ms - previous.timestamp_ms > gap_ms:
            # long silence: close the current trajectory and open a new one
            clock.set(previous.timestamp_ms)
            session.stop()
            clock.set(fix.timestamp_ms)
            session.start()
        clock.set(fix.timestamp_ms)
        source.put_fix(fix)
        source.pump()
        session.tick()
        previous = fix

    try:
        session.shutdown()
    except PathMemoryError as exc:
        print(f"Saving failed: {exc}", file=sys.stderr)
        return 2

    status = store.status()
    rejected = ", ".join(f"{k}={v}" for k, v in sorted(observer.rejected.items())) or "none"
    print(f"rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print(f"accepted={observer.accepted}, rejected: {rejected}")
    print(
        f"trajectories saved={len(observer.finished)}, discarded={observer.discarded}, "
        f"distance={format_distance(sum(t.distance_m for t in observer.finished))}"
    )
    print(f"stays promoted={len(observer.promoted)}")
    print(f"store: {status.used_bytes} / {status.quota_bytes} bytes ({status.percentage_used:.1f}%)")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = _open_store(args, config)
    snapshot = store.load()
    status = store.status()

    print(f"used={status.used_bytes}B quota={status.quota_bytes}B ({status.percentage_used:.1f}%)")
    if snapshot is None:
        print("no stored history")
        return 0
    promoted = sum(1 for c in snapshot.clusters if c.promoted)
    saved = dt_from_epoch_ms(snapshot.saved_at_ms, args.tz).isoformat(sep=" ")
    print(
        f"schema={snapshot.schema_version} saved={saved} trajectories={len(snapshot.trajectories)} "
        f"stays={len(snapshot.clusters)} (promoted={promoted}) total={format_distance(snapshot.total_distance_m)}"
    )
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = _open_store(args, config)
    snapshot = store.load()
    if snapshot is None or not snapshot.trajectories:
        print("no stored trajectories")
        return 0

    now_ms = epoch_ms_from_dt(parse_dt(args.at, args.tz)) if args.at else SystemClock()()
    for traj in sorted(snapshot.trajectories, key=lambda t: t.start_ms):
        style = memory_style(traj.start_ms, now_ms)
        start = dt_from_epoch_ms(traj.start_ms, args.tz).isoformat(sep=" ", timespec="seconds")
        print(
            f"{traj.id}  {start}  {format_clock(traj.duration_ms / 1000.0):>8}  "
            f"points={len(traj.points):<5} {format_distance(traj.distance_m):>8}  "
            f"{style.stage} {style.color} {style.opacity:.2f}"
        )
    return 0


def _cmd_stays(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = _open_store(args, config)
    snapshot = store.load()
    clusters = list(snapshot.clusters) if snapshot is not None else []
    if args.promoted_only:
        clusters = [c for c in clusters if c.promoted]
    write_stays_csv(clusters, args.out, args.tz)
    print(f"stays={len(clusters)} written to {args.out}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = _open_store(args, config)
    document = store.export_document(_loaded_input(store))
    out = Path(args.out or f"path_memory_{date.today().isoformat()}.json")
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"exported {len(document['trajectories'])} trajectories to {out}")
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = _open_store(args, config)
    try:
        snapshot = store.import_document(Path(args.file).read_bytes())
    except OSError as exc:
        print(f"Cannot read {args.file}: {exc}", file=sys.stderr)
        return 1
    except InvalidImportError as exc:
        print(f"Import rejected, stored data unchanged: {exc}", file=sys.stderr)
        return 1
    print(f"imported {len(snapshot.trajectories)} trajectories and {len(snapshot.clusters)} stays")
    return 0


def _cmd_clear(args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to clear without --yes (a backup is kept either way).", file=sys.stderr)
        return 1
    config = _config_from_args(args)
    store = _open_store(args, config)
    store.clear()
    print("stored history cleared")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--store", type=str, default=DEFAULT_STORE_DIR, help="Directory holding the history files")
    common.add_argument("--config", type=str, default=None, help="JSON file with TrackerConfig overrides")
    common.add_argument("--tz", type=str, default=DEFAULT_TZ, help="Timezone (IANA) for displayed times")
    common.add_argument("--stay-radius-m", type=float, default=None, help="Override the stay radius (meters)")
    common.add_argument("--quota-bytes", type=int, default=None, help="Override the storage quota (bytes)")
    common.add_argument("--retention-days", type=int, default=None, help="Override the eviction age (days)")

    p = argparse.ArgumentParser(prog="path_memory")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_rep = sub.add_parser("replay", parents=[common], help="Feed a recorded CSV through a tracking session")
    p_rep.add_argument("--csv", type=str, default="Path.csv", help="Input CSV path")
    p_rep.add_argument(
        "--session-gap-minutes",
        type=float,
        default=30.0,
        help="Start a new trajectory when consecutive fixes are further apart than this",
    )
    p_rep.set_defaults(func=_cmd_replay)

    p_st = sub.add_parser("status", parents=[common], help="Show store usage and stored history summary")
    p_st.set_defaults(func=_cmd_status)

    p_hist = sub.add_parser("history", parents=[common], help="List stored trajectories with their memory colour")
    p_hist.add_argument(
        "--at",
        type=str,
        default=None,
        help="Pretend the current time is this (e.g. 2025-12-31 23:00:00) to preview how memories fade",
    )
    p_hist.set_defaults(func=_cmd_history)

    p_stays = sub.add_parser("stays", parents=[common], help="Write stored stay clusters to CSV")
    p_stays.add_argument("--out", type=str, default="stays.csv", help="Output CSV path")
    p_stays.add_argument("--promoted-only", action="store_true", help="Only stays that reached the threshold")
    p_stays.set_defaults(func=_cmd_stays)

    p_exp = sub.add_parser("export", parents=[common], help="Export stored history as a JSON document")
    p_exp.add_argument("--out", type=str, default=None, help="Output path (default: path_memory_<date>.json)")
    p_exp.set_defaults(func=_cmd_export)

    p_imp = sub.add_parser("import", parents=[common], help="Replace stored history with an exported document")
    p_imp.add_argument("--file", type=str, required=True, help="Exported JSON document")
    p_imp.set_defaults(func=_cmd_import)

    p_clr = sub.add_parser("clear", parents=[common], help="Delete stored history (a backup is kept)")
    p_clr.add_argument("--yes", action="store_true", help="Confirm deletion")
    p_clr.set_defaults(func=_cmd_clear)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
