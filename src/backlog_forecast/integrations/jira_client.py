from __future__ import annotations

import base64
import json
import logging
import os
from typing import Any
from urllib.parse import quote
from urllib.request import Request, urlopen

from backlog_forecast.domain.models import BacklogItem

LOGGER = logging.getLogger(__name__)

ISSUE_FIELDS = ["summary", "status", "assignee", "duedate", "priority"]


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _load_jira_config() -> tuple[dict[str, Any] | None, list[str]]:
    site_url = (os.getenv("JIRA_SITE_URL") or "").rstrip("/")
    email = os.getenv("JIRA_EMAIL")
    api_token = os.getenv("JIRA_API_TOKEN")

    missing = [
        name
        for name, value in {
            "JIRA_SITE_URL": site_url,
            "JIRA_EMAIL": email,
            "JIRA_API_TOKEN": api_token,
        }.items()
        if not value
    ]
    if missing:
        return None, missing

    return {
        "site_url": site_url,
        "email": email,
        "api_token": api_token,
        "max_results": _parse_int(os.getenv("BACKLOG_FORECAST_JIRA_MAX_RESULTS"), 50),
        "timeout_s": _parse_int(os.getenv("BACKLOG_FORECAST_HTTP_TIMEOUT"), 15),
    }, []


def jira_config_status() -> dict[str, Any]:
    config, missing = _load_jira_config()
    return {
        "configured": config is not None,
        "missing": missing,
    }


def build_backlog_jql(project_key: str) -> str:
    key = (project_key or "").strip()
    if not key:
        raise ValueError("Project key is required.")
    escaped = key.replace("\\", "\\\\").replace('"', '\\"')
    return f'project = "{escaped}" AND resolution = Unresolved ORDER BY rank DESC'


def _auth_header(config: dict[str, Any]) -> str:
    token = base64.b64encode(f"{config['email']}:{config['api_token']}".encode("utf-8"))
    return f"Basic {token.decode('ascii')}"


def _request_json(
    config: dict[str, Any],
    path: str,
    payload: dict[str, Any] | None = None,
) -> Any:
    headers = {
        "Accept": "application/json",
        "Authorization": _auth_header(config),
    }
    data = None
    method = "GET"
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload).encode("utf-8")
        method = "POST"
    req = Request(f"{config['site_url']}{path}", data=data, headers=headers, method=method)
    with urlopen(req, timeout=config["timeout_s"]) as response:
        return json.loads(response.read().decode("utf-8"))


def _require_config() -> dict[str, Any]:
    config, missing = _load_jira_config()
    if config is None:
        raise ValueError(f"Jira not configured: {', '.join(missing)}")
    return config


def parse_issue(issue: dict[str, Any]) -> dict[str, Any]:
    fields = issue.get("fields") or {}
    assignee = fields.get("assignee")
    status = fields.get("status")
    priority = fields.get("priority")
    return {
        "key": issue.get("key"),
        "summary": fields.get("summary") or "",
        "assignee": {
            "displayName": assignee.get("displayName") or "",
            "accountId": assignee.get("accountId") or "",
        }
        if assignee
        else None,
        "status": {"name": status.get("name") or "", "id": status.get("id") or ""}
        if status
        else None,
        "duedate": fields.get("duedate") or None,
        "priority": {"name": priority.get("name") or "", "id": priority.get("id") or ""}
        if priority
        else None,
    }


def issue_to_backlog_item(issue: dict[str, Any]) -> BacklogItem:
    assignee = issue.get("assignee") or {}
    status = issue.get("status") or {}
    priority = issue.get("priority") or {}
    return BacklogItem(
        key=issue.get("key") or "",
        due_date=issue.get("duedate"),
        assignee_id=assignee.get("accountId") or None,
        summary=issue.get("summary") or "",
        status=status.get("name") or None,
        priority=priority.get("name") or None,
        assignee_name=assignee.get("displayName") or None,
    )


def clean_members(users: Any) -> list[dict[str, Any]]:
    if not isinstance(users, list):
        return []
    members = [
        {
            "accountId": user.get("accountId"),
            "displayName": user.get("displayName") or "",
            "avatarUrl": (user.get("avatarUrls") or {}).get("24x24"),
        }
        for user in users
        if user.get("accountType") == "atlassian"
    ]
    members.sort(key=lambda member: member["displayName"].casefold())
    return members


def fetch_project_issues(project_key: str) -> list[dict[str, Any]]:
    """Fetch unresolved issues of a project, ranked as on the board."""
    if not (project_key or "").strip():
        return []
    config = _require_config()
    payload = {
        "jql": build_backlog_jql(project_key),
        "fields": ISSUE_FIELDS,
        "maxResults": config["max_results"],
    }
    try:
        data = _request_json(config, "/rest/api/3/search/jql", payload)
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.error("Jira issue search failed for %s: %s", project_key, exc)
        return []
    if not isinstance(data, dict) or not data.get("issues"):
        return []
    return [parse_issue(issue) for issue in data["issues"]]


def fetch_project_members(project_key: str) -> list[dict[str, Any]]:
    if not (project_key or "").strip():
        return []
    config = _require_config()
    path = f"/rest/api/3/user/assignable/search?project={quote(project_key.strip())}"
    try:
        users = _request_json(config, path)
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.error("Jira member lookup failed for %s: %s", project_key, exc)
        return []
    return clean_members(users)
