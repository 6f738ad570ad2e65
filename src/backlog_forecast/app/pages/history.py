from __future__ import annotations

import sqlite3

import pandas as pd
import streamlit as st

from backlog_forecast.data.repositories import ForecastSnapshotRepository


def render(con: sqlite3.Connection) -> None:
    st.header("Snapshot history")

    repo = ForecastSnapshotRepository(con)
    project_filter = st.text_input("Project key (empty = all)", value="").strip()
    snapshots = repo.list_snapshots(project_filter or None, limit=100)
    if not snapshots:
        st.info("No saved snapshots.")
        return

    rows = []
    for snapshot in snapshots:
        drivers = snapshot["drivers"]
        summary = snapshot["summary"]
        by_level = summary.get("by_risk_level") or {}
        shock = snapshot.get("shock") or {}
        rows.append(
            {
                "Saved": snapshot["created_at"][:19].replace("T", " "),
                "Project": snapshot["project_key"],
                "Load": drivers.get("cognitive_load"),
                "Complexity": drivers.get("system_complexity"),
                "Absence": drivers.get("absence_risk"),
                "Shocked members": len(shock.get("affected_member_ids") or []),
                "Items": summary.get("items"),
                "High": by_level.get("High", 0),
                "Medium": by_level.get("Medium", 0),
                "Low": by_level.get("Low", 0),
                "Max delay": summary.get("max_delay_days"),
                "Latest date": summary.get("latest_date"),
            }
        )
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
