from __future__ import annotations

import sqlite3
from typing import Any

import altair as alt
import pandas as pd
import streamlit as st

from backlog_forecast.data.repositories import ForecastSnapshotRepository
from backlog_forecast.data.seed import load_backlog_csv, load_sample_backlog, members_from_issues
from backlog_forecast.domain.models import RiskDrivers, RiskLevel, ShockAction, ShockDirective
from backlog_forecast.integrations import jira_client
from backlog_forecast.services.business_days import business_days_between
from backlog_forecast.services.forecast import utc_today
from backlog_forecast.services.scenario import (
    advice_severity,
    delay_probability,
    forecast_backlog,
    forecasts_to_frame,
    make_sampler,
    risk_level_advice,
    strategic_advice,
    summarize_forecasts,
)
from backlog_forecast.services.seeding import stable_sample

RISK_COLORS = {
    RiskLevel.LOW.value: "#36b37e",
    RiskLevel.MEDIUM.value: "#ffab00",
    RiskLevel.HIGH.value: "#de350b",
}

SOURCE_JIRA = "Jira project"
SOURCE_CSV = "CSV upload"
SOURCE_SAMPLE = "Sample backlog"


@st.cache_data(ttl=600)
def _cached_project_issues(project_key: str) -> list[dict[str, Any]]:
    return jira_client.fetch_project_issues(project_key)


@st.cache_data(ttl=1800)
def _cached_project_members(project_key: str) -> list[dict[str, Any]]:
    return jira_client.fetch_project_members(project_key)


def _load_source(source: str) -> tuple[str, list[dict[str, Any]], list[dict[str, Any]]]:
    if source == SOURCE_JIRA:
        project_key = st.text_input("Project key", value=st.session_state.get("project_key", ""))
        st.session_state["project_key"] = project_key.strip()
        if not project_key.strip():
            return "", [], []
        issues = _cached_project_issues(project_key.strip())
        members = _cached_project_members(project_key.strip()) or members_from_issues(issues)
        return project_key.strip(), issues, members
    if source == SOURCE_CSV:
        uploaded = st.file_uploader("Backlog CSV", type=["csv"])
        if uploaded is None:
            return "", [], []
        try:
            issues = load_backlog_csv(uploaded)
        except ValueError as exc:
            st.error(f"CSV: {exc}")
            return "", [], []
        return uploaded.name.rsplit(".", 1)[0], issues, members_from_issues(issues)
    issues = load_sample_backlog()
    return "sample", issues, members_from_issues(issues)


def _style_risk(value: str) -> str:
    color = RISK_COLORS.get(value)
    return f"color: {color}; font-weight: 600" if color else ""


def _delay_chart(frame: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(frame)
        .mark_bar()
        .encode(
            x=alt.X("Key:N", sort="-y", title="Issue"),
            y=alt.Y("Delay days:Q", title="Delay days"),
            color=alt.Color(
                "Risk:N",
                scale=alt.Scale(domain=list(RISK_COLORS), range=list(RISK_COLORS.values())),
            ),
            tooltip=["Key", "Summary", "Due date", "Simulated date", "Delay days", "Risk"],
        )
        .properties(height=280)
    )


def render(con: sqlite3.Connection) -> None:
    st.header("Future Simulator")
    st.caption("What-if delay forecast for every open backlog item.")

    jira_status = jira_client.jira_config_status()
    sources = [SOURCE_SAMPLE, SOURCE_CSV]
    if jira_status["configured"]:
        sources.insert(0, SOURCE_JIRA)
    source = st.radio("Backlog source", sources, horizontal=True)
    if not jira_status["configured"]:
        st.caption(f"Jira disabled (missing: {', '.join(jira_status['missing'])}).")

    project_key, issues, members = _load_source(source)
    if not issues:
        st.info("No backlog items to simulate.")
        return

    col1, col2, col3 = st.columns(3)
    cognitive_load = col1.slider("Team cognitive load", 0, 100, 50)
    col1.caption("Context switching, WIP and coordination overhead.")
    system_complexity = col2.slider("System complexity", 0, 100, 50)
    col2.caption("Integration surfaces, dependency depth and coupling.")
    absence_risk = col3.slider("Absence risk (%)", 0, 100, 10)
    col3.caption("Chance of a 3-day absence for each item.")

    member_labels = {m["accountId"]: m["displayName"] for m in members if m.get("accountId")}
    shock_col1, shock_col2 = st.columns([2, 1])
    shocked_members = shock_col1.multiselect(
        "Shock: affected team members",
        options=list(member_labels),
        format_func=lambda account_id: member_labels.get(account_id, account_id),
    )
    shock_action = shock_col2.selectbox(
        "Shock action",
        list(ShockAction),
        format_func=lambda action: action.label,
    )

    drivers = RiskDrivers(
        cognitive_load=cognitive_load,
        system_complexity=system_complexity,
        absence_risk=absence_risk,
    )
    shock = ShockDirective(frozenset(shocked_members), shock_action) if shocked_members else None
    today = utc_today()

    items = []
    for issue in issues:
        if issue.get("key"):
            items.append(jira_client.issue_to_backlog_item(issue))
    forecast = forecast_backlog(
        items,
        drivers,
        today,
        shock=shock,
        sampler=make_sampler(project_key),
    )
    for key, error in forecast.skipped:
        st.warning(f"{key}: {error}")
    if not forecast.rows:
        return

    summary = summarize_forecasts(forecast.results)
    probability = delay_probability(
        cognitive_load,
        system_complexity,
        stable_sample(project_key or "backlog", salt="probability"),
    )

    metric_cols = st.columns(4)
    metric_cols[0].metric("Probability of delay", f"{probability}%")
    metric_cols[1].metric("High risk items", summary["by_risk_level"][RiskLevel.HIGH.value])
    metric_cols[2].metric("Overdue items", summary["overdue"])
    metric_cols[3].metric("Max delay (days)", summary["max_delay_days"])

    advice = strategic_advice(probability)
    severity = advice_severity(probability)
    if severity == "error":
        st.error(advice)
    elif severity == "warning":
        st.warning(advice)
    else:
        st.info(advice)

    frame = forecasts_to_frame(forecast.rows)
    frame["Slip (business days)"] = [
        business_days_between(result.original_date, result.simulated_date)
        if result.original_date
        else result.risk_days
        for result in forecast.results
    ]
    st.dataframe(
        frame.style.map(_style_risk, subset=["Risk"]),
        use_container_width=True,
        hide_index=True,
    )
    st.altair_chart(_delay_chart(frame), use_container_width=True)

    with st.expander("Per-item advice"):
        for item, result in forecast.rows:
            flags = []
            if result.is_overdue:
                flags.append("overdue")
            if result.is_sick:
                flags.append("absence")
            if result.is_shocked:
                flags.append("shock")
            flag_label = f" ({', '.join(flags)})" if flags else ""
            st.markdown(
                f"**{item.key}** · {result.risk_level.value}{flag_label}: "
                f"{risk_level_advice(result.risk_level)}"
            )

    if st.button("Save snapshot", disabled=not project_key):
        snapshot_id = ForecastSnapshotRepository(con).save_snapshot(
            project_key,
            drivers.to_dict(),
            shock.to_dict() if shock else None,
            summary,
        )
        st.success(f"Snapshot saved ({snapshot_id[:8]}).")
