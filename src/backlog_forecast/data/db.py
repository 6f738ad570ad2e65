from __future__ import annotations

import os
from pathlib import Path
import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS analysis_cache (
  project_key TEXT PRIMARY KEY,
  analysis_json TEXT NOT NULL,
  analysis_timestamp TEXT,
  saved_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS forecast_snapshots (
  id TEXT PRIMARY KEY,
  project_key TEXT NOT NULL,
  drivers_json TEXT NOT NULL,
  shock_json TEXT,
  summary_json TEXT NOT NULL,
  created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_forecast_snapshots_project_created
  ON forecast_snapshots (project_key, created_at);
"""


def default_db_path() -> Path:
    data_dir = Path(os.getenv("BACKLOG_FORECAST_DATA_DIR", "./data"))
    return Path(os.getenv("BACKLOG_FORECAST_DB_PATH", data_dir / "app.db"))


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path.as_posix(), check_same_thread=False)
    con.row_factory = sqlite3.Row
    return con


def _get_user_version(con: sqlite3.Connection) -> int:
    row = con.execute("PRAGMA user_version;").fetchone()
    return int(row[0]) if row else 0


def _set_user_version(con: sqlite3.Connection, version: int) -> None:
    con.execute(f"PRAGMA user_version = {version};")


def init_db(con: sqlite3.Connection) -> None:
    con.executescript(SCHEMA_SQL)
    if _get_user_version(con) < SCHEMA_VERSION:
        _set_user_version(con, SCHEMA_VERSION)
    con.commit()


def table_count(con: sqlite3.Connection, table: str) -> int:
    cur = con.execute(f"SELECT COUNT(1) AS n FROM {table}")
    return int(cur.fetchone()["n"])
