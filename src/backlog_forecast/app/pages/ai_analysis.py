from __future__ import annotations

from datetime import datetime, timezone
import sqlite3
from typing import Any

import streamlit as st

from backlog_forecast.data.repositories import AnalysisRepository
from backlog_forecast.data.seed import load_sample_backlog
from backlog_forecast.integrations import ai_analysis, jira_client

SEVERITY_ICONS = {"High": "🔴", "Medium": "🟠", "Low": "🟢"}


def _render_analysis(analysis: dict[str, Any]) -> None:
    st.metric("Volatility score", analysis.get("volatilityScore", 0))
    if analysis.get("error"):
        st.warning(analysis["error"])

    st.subheader("Identified risks")
    risks = analysis.get("identifiedRisks") or []
    if not risks:
        st.caption("No risks reported.")
    for risk in risks:
        icon = SEVERITY_ICONS.get(risk.get("severity"), "⚪")
        st.markdown(f"{icon} **{risk.get('type')}** · {risk.get('description')}")

    st.subheader("Strategic advice")
    for line in analysis.get("strategicAdvice") or []:
        st.markdown(f"- {line}")


def render(con: sqlite3.Connection) -> None:
    st.header("AI Workflow Analysis")
    st.caption("Knowledge silos, complexity friction and cascading delays across the backlog.")

    repo = AnalysisRepository(con)
    project_key = st.text_input("Project key", value=st.session_state.get("project_key", "sample"))
    project_key = project_key.strip()
    st.session_state["project_key"] = project_key

    if not ai_analysis.ai_endpoint():
        st.caption("BACKLOG_FORECAST_AI_ENDPOINT not set; runs return a fallback payload.")

    cached = repo.load_analysis(project_key) if project_key else None
    if cached:
        st.caption(f"Cached analysis from {cached.get('timestamp') or cached.get('saved_at')}")

    if st.button("Run analysis", disabled=not project_key):
        if jira_client.jira_config_status()["configured"] and project_key != "sample":
            tasks = jira_client.fetch_project_issues(project_key)
        else:
            tasks = load_sample_backlog()
        scenarios = {"shockMembers": [], "source": "dashboard"}
        with st.spinner("Running analysis..."):
            analysis = ai_analysis.analyze_emergent_workflows(tasks, scenarios)
        timestamp = datetime.now(timezone.utc).isoformat()
        if repo.save_analysis(project_key, analysis, timestamp):
            st.success("Analysis saved.")
        cached = {"analysis": analysis, "timestamp": timestamp}

    if cached:
        _render_analysis(cached["analysis"])
    else:
        st.info("No analysis yet for this project.")
