from __future__ import annotations

from pathlib import Path
from typing import IO, Any

import pandas as pd

SAMPLE_BACKLOG_PATH = Path(__file__).with_name("sample_backlog.csv")

REQUIRED_COLUMNS = {"key"}


def _read_csv(source: Path | IO[Any]) -> pd.DataFrame:
    if isinstance(source, Path) and not source.exists():
        return pd.DataFrame()
    try:
        df = pd.read_csv(source, sep=None, engine="python", dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    df.columns = [c.strip().lstrip("\ufeff").lower() for c in df.columns]
    return df


def _cell(row: dict[str, Any], column: str) -> str:
    return str(row.get(column) or "").strip()


def backlog_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Turn a backlog table into issue dicts shaped like the Jira client output."""
    if df.empty:
        return []
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Backlog CSV requires column(s): {', '.join(sorted(missing))}")

    issues: list[dict[str, Any]] = []
    for row in df.to_dict(orient="records"):
        key = _cell(row, "key")
        if not key:
            continue
        assignee_id = _cell(row, "assignee_id")
        status = _cell(row, "status")
        priority = _cell(row, "priority")
        issues.append(
            {
                "key": key,
                "summary": _cell(row, "summary"),
                "assignee": {
                    "displayName": _cell(row, "assignee_name") or assignee_id,
                    "accountId": assignee_id,
                }
                if assignee_id
                else None,
                "status": {"name": status, "id": ""} if status else None,
                "duedate": _cell(row, "duedate") or None,
                "priority": {"name": priority, "id": ""} if priority else None,
            }
        )
    return issues


def load_backlog_csv(source: Path | IO[Any]) -> list[dict[str, Any]]:
    return backlog_from_frame(_read_csv(source))


def load_sample_backlog() -> list[dict[str, Any]]:
    return load_backlog_csv(SAMPLE_BACKLOG_PATH)


def members_from_issues(issues: list[dict[str, Any]]) -> list[dict[str, Any]]:
    members: dict[str, str] = {}
    for issue in issues:
        assignee = issue.get("assignee") or {}
        account_id = assignee.get("accountId")
        if account_id:
            members[account_id] = assignee.get("displayName") or account_id
    return [
        {"accountId": account_id, "displayName": name, "avatarUrl": None}
        for account_id, name in sorted(members.items(), key=lambda item: item[1].casefold())
    ]
