from __future__ import annotations

import json
import logging
import os
import re
from typing import Any
from urllib.error import HTTPError
from urllib.request import Request, urlopen

LOGGER = logging.getLogger(__name__)

PROJECT_DATA_PLACEHOLDER = "{{PROJECT_DATA_JSON}}"

WORKFLOW_ANALYSIS_PROMPT = """
You are an expert Production Manager and AI World Model.
Your task is to analyze the provided project backlog to identify "Emergent Workflows":
hidden patterns and risks that are not visible in a standard Gantt chart or burndown.

### INPUT DATA
A JSON array of backlog issues including Summary, Assignee, Priority, and Due Date.

### ANALYSIS GOALS
1. **Knowledge Silos**: Identify if critical path tasks are concentrated on a single person.
2. **Complexity Friction**: Identify clusters of high-priority tasks that are likely to have high integration costs.
3. **Cascading Delays**: Predict how a delay in one high-priority task might "shock" the rest of the schedule.
4. **Strategy Advice**: Provide 3 actionable bullet points for the PM.

### OUTPUT FORMAT
You MUST return valid JSON ONLY, with the following structure:
{
  "volatilityScore": (0-100),
  "identifiedRisks": [
    { "type": "Silo|Complexity|Stochastic", "description": "...", "severity": "High|Medium|Low" }
  ],
  "strategicAdvice": [ "...", "...", "..." ]
}

PROJECT DATA:
{{PROJECT_DATA_JSON}}
"""

SEVERITIES = ("High", "Medium", "Low")

_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def ai_endpoint() -> str | None:
    return os.getenv("BACKLOG_FORECAST_AI_ENDPOINT") or None


def fallback_analysis(description: str, advice: str) -> dict[str, Any]:
    return {
        "volatilityScore": 0,
        "identifiedRisks": [{"type": "Error", "description": description, "severity": "High"}],
        "strategicAdvice": [advice],
    }


def build_prompt(tasks: list[dict[str, Any]], template: str = WORKFLOW_ANALYSIS_PROMPT) -> str:
    project_data = json.dumps(tasks, indent=2, ensure_ascii=False)
    return template.replace(PROJECT_DATA_PLACEHOLDER, project_data)


def extract_json_payload(text: str) -> dict[str, Any]:
    """Pull the JSON object out of model output that may be wrapped in markdown."""
    match = _JSON_BLOCK_RE.search(text or "")
    if not match:
        return {"error": "Failed to parse AI response"}
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        return {"error": "Failed to parse AI response"}
    if not isinstance(payload, dict):
        return {"error": "Failed to parse AI response"}
    return payload


def normalize_analysis(payload: dict[str, Any]) -> dict[str, Any]:
    try:
        score = int(round(float(payload.get("volatilityScore") or 0)))
    except (TypeError, ValueError):
        score = 0

    risks = []
    for risk in payload.get("identifiedRisks") or []:
        if not isinstance(risk, dict) or not risk.get("description"):
            continue
        severity = str(risk.get("severity") or "Medium").capitalize()
        risks.append(
            {
                "type": str(risk.get("type") or "Other"),
                "description": str(risk["description"]),
                "severity": severity if severity in SEVERITIES else "Medium",
            }
        )

    advice = [str(item) for item in payload.get("strategicAdvice") or [] if item]
    normalized = {
        "volatilityScore": max(0, min(100, score)),
        "identifiedRisks": risks,
        "strategicAdvice": advice,
    }
    if payload.get("error"):
        normalized["error"] = str(payload["error"])
    return normalized


def analyze_emergent_workflows(
    tasks: list[dict[str, Any]],
    scenarios: dict[str, Any] | None = None,
    endpoint: str | None = None,
) -> dict[str, Any]:
    """Send backlog data to the analysis service and return its risk summary.

    Any transport failure is logged and answered with a fallback payload so
    the dashboard always has something to render.
    """
    url = endpoint or ai_endpoint()
    if not url:
        return fallback_analysis(
            "AI analysis endpoint not configured",
            "Set BACKLOG_FORECAST_AI_ENDPOINT to enable AI analysis.",
        )

    body = {
        "tasks": tasks,
        "scenarios": scenarios or {},
        "promptTemplate": WORKFLOW_ANALYSIS_PROMPT,
    }
    req = Request(
        url,
        data=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    timeout_s = _parse_int(os.getenv("BACKLOG_FORECAST_HTTP_TIMEOUT"), 60)
    try:
        with urlopen(req, timeout=timeout_s) as response:
            text = response.read().decode("utf-8")
    except HTTPError as exc:
        LOGGER.error("AI analysis call failed: %s %s", exc.code, exc.reason)
        return fallback_analysis("Analysis service connectivity issue", "Check the analysis service logs.")
    except OSError as exc:
        LOGGER.error("Exception during AI analysis: %s", exc)
        return fallback_analysis("Internal analysis error", "Check the dashboard logs for details.")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = extract_json_payload(text)
    if not isinstance(payload, dict):
        payload = {"error": "Failed to parse AI response"}
    return normalize_analysis(payload)
