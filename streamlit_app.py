from __future__ import annotations

from datetime import datetime, time
from pathlib import Path

import streamlit as st

from path_memory.display import MEMORY_STAGES, memory_style
from path_memory.models import DEFAULT_TZ, Snapshot
from path_memory.store import PRIMARY_KEY, SnapshotStore
from path_memory.timeutils import (
    dt_from_epoch_ms,
    epoch_ms_from_dt,
    format_clock,
    format_distance,
    format_hhmmss,
    tzinfo_from_name,
)


@st.cache_data(show_spinner=False)
def _load_snapshot(store_dir: str, mtime: float) -> Snapshot | None:
    _ = mtime  # part of cache key so updated files reload automatically
    return SnapshotStore(store_dir).load()


def main() -> None:
    st.set_page_config(page_title="Path memory", layout="wide")
    st.title("Path memory: stored trajectories and stays")

    with st.sidebar:
        st.subheader("Data")
        tz_name = st.text_input("Timezone (IANA)", value=DEFAULT_TZ)
        store_dir = st.text_input("Store directory", value="path_memory_data")

        st.subheader("View as of")
        tz = tzinfo_from_name(tz_name)
        today = datetime.now(tz).date()
        at_date = st.date_input("Date", value=today)
        at_time = st.time_input("Time", value=time(12, 0))

    store = SnapshotStore(store_dir)
    primary = store.backend.path_for(PRIMARY_KEY)
    if not primary.exists():
        st.error(f"No stored history in {store_dir!r}. Run `python -m path_memory replay --csv ...` first.")
        return

    snapshot = _load_snapshot(store_dir, primary.stat().st_mtime)
    if snapshot is None:
        st.error("Stored history could not be read; it was moved aside as history.broken.json.")
        return

    status = store.status()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Trajectories", str(len(snapshot.trajectories)))
    c2.metric("Total distance", format_distance(snapshot.total_distance_m))
    c3.metric("Promoted stays", str(sum(1 for c in snapshot.clusters if c.promoted)))
    c4.metric("Storage used", f"{status.percentage_used:.1f}%")
    st.progress(min(1.0, status.percentage_used / 100.0))

    now_ms = epoch_ms_from_dt(datetime.combine(at_date, at_time).replace(tzinfo=tz))

    rows: list[dict[str, object]] = []
    for traj in sorted(snapshot.trajectories, key=lambda t: t.start_ms, reverse=True):
        style = memory_style(traj.start_ms, now_ms)
        rows.append(
            {
                "id": traj.id,
                "start_time": dt_from_epoch_ms(traj.start_ms, tz_name).isoformat(sep=" ", timespec="seconds"),
                "duration": format_clock(traj.duration_ms / 1000.0),
                "points": len(traj.points),
                "distance": format_distance(traj.distance_m),
                "memory": style.stage,
                "color": style.color,
                "opacity": round(style.opacity, 2),
            }
        )

    st.subheader("Trajectories")
    st.dataframe(rows, use_container_width=True, height=420)

    with st.expander("Memory stages", expanded=False):
        st.dataframe(
            [
                {"stage": s.name, "until_seconds": s.threshold_s, "color": s.color, "opacity": s.opacity}
                for s in MEMORY_STAGES
            ],
            use_container_width=True,
        )

    stays = [c for c in snapshot.clusters if c.promoted]
    st.subheader("Stays (one hour or longer)")
    st.dataframe(
        [
            {
                "latitude": c.latitude,
                "longitude": c.longitude,
                "start_time": dt_from_epoch_ms(c.start_ms, tz_name).isoformat(sep=" ", timespec="seconds"),
                "duration": format_hhmmss(c.duration_seconds),
            }
            for c in stays
        ],
        use_container_width=True,
    )
    if stays:
        st.map([{"lat": c.latitude, "lon": c.longitude} for c in stays])

    st.caption(f"Store files live in {Path(store_dir).resolve()}.")


if __name__ == "__main__":
    main()
