from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

LOGGER = logging.getLogger(__name__)


def _loads(value: str | None) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


class AnalysisRepository:
    """One cached AI analysis per project, overwritten on every save."""

    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def save_analysis(
        self,
        project_key: str,
        analysis: dict[str, Any] | None,
        timestamp: str | None = None,
    ) -> bool:
        key = (project_key or "").strip()
        if not key or not analysis:
            return False
        try:
            self.con.execute(
                """
                INSERT INTO analysis_cache (project_key, analysis_json, analysis_timestamp, saved_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(project_key) DO UPDATE SET
                    analysis_json = excluded.analysis_json,
                    analysis_timestamp = excluded.analysis_timestamp,
                    saved_at = excluded.saved_at
                """,
                (
                    key,
                    json.dumps(analysis, ensure_ascii=False),
                    timestamp,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            self.con.commit()
        except sqlite3.Error as exc:
            LOGGER.error("Error saving analysis for %s: %s", key, exc)
            return False
        return True

    def load_analysis(self, project_key: str) -> dict[str, Any] | None:
        key = (project_key or "").strip()
        if not key:
            return None
        try:
            row = self.con.execute(
                """
                SELECT project_key, analysis_json, analysis_timestamp, saved_at
                FROM analysis_cache
                WHERE project_key = ?
                """,
                (key,),
            ).fetchone()
        except sqlite3.Error as exc:
            LOGGER.error("Error loading analysis for %s: %s", key, exc)
            return None
        if row is None:
            return None
        analysis = _loads(row["analysis_json"])
        if analysis is None:
            return None
        return {
            "projectKey": row["project_key"],
            "analysis": analysis,
            "timestamp": row["analysis_timestamp"],
            "saved_at": row["saved_at"],
        }


class ForecastSnapshotRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def save_snapshot(
        self,
        project_key: str,
        drivers: dict[str, Any],
        shock: dict[str, Any] | None,
        summary: dict[str, Any],
    ) -> str:
        key = (project_key or "").strip()
        if not key:
            raise ValueError("Project key is required.")
        snapshot_id = str(uuid4())
        self.con.execute(
            """
            INSERT INTO forecast_snapshots (
                id,
                project_key,
                drivers_json,
                shock_json,
                summary_json,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                snapshot_id,
                key,
                json.dumps(drivers, ensure_ascii=False),
                json.dumps(shock, ensure_ascii=False) if shock else None,
                json.dumps(summary, ensure_ascii=False),
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        self.con.commit()
        return snapshot_id

    def list_snapshots(self, project_key: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        query = """
            SELECT id, project_key, drivers_json, shock_json, summary_json, created_at
            FROM forecast_snapshots
        """
        params: list[Any] = []
        if project_key:
            query += " WHERE project_key = ?"
            params.append(project_key.strip())
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        try:
            rows = [dict(row) for row in self.con.execute(query, params).fetchall()]
        except sqlite3.Error as exc:
            LOGGER.error("Error listing forecast snapshots: %s", exc)
            return []
        return [
            {
                "id": row["id"],
                "project_key": row["project_key"],
                "drivers": _loads(row["drivers_json"]) or {},
                "shock": _loads(row["shock_json"]),
                "summary": _loads(row["summary_json"]) or {},
                "created_at": row["created_at"],
            }
            for row in rows
        ]
