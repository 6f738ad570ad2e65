from __future__ import annotations

import argparse
from datetime import date
import json
import logging
import os
from pathlib import Path
import random
import sys
from typing import Any

from backlog_forecast.data.db import connect, default_db_path, init_db
from backlog_forecast.data.repositories import ForecastSnapshotRepository
from backlog_forecast.data.seed import load_backlog_csv, load_sample_backlog
from backlog_forecast.domain.models import (
    BacklogItem,
    RiskDrivers,
    ShockAction,
    ShockDirective,
    ValidationError,
)
from backlog_forecast.integrations.jira_client import (
    fetch_project_issues,
    issue_to_backlog_item,
    jira_config_status,
)
from backlog_forecast.services.forecast import utc_today
from backlog_forecast.services.scenario import (
    Sampler,
    forecast_backlog,
    forecasts_to_frame,
    make_sampler,
    summarize_forecasts,
)
from backlog_forecast.services.seeding import sample_from_rng

LOGGER = logging.getLogger(__name__)


def _parse_today(value: str | None) -> date:
    if not value:
        return utc_today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Invalid --today date (YYYY-MM-DD).") from exc


def _driver(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not a number: {value!r}") from exc
    if not 0 <= number <= 100:
        raise argparse.ArgumentTypeError(f"Driver must be in [0, 100], got {value}")
    return number


def _parse_members(value: str | None) -> list[str]:
    if not value:
        return []
    return [member.strip() for member in value.split(",") if member.strip()]


def _load_issues(args: argparse.Namespace) -> list[dict[str, Any]]:
    if args.csv:
        return load_backlog_csv(Path(args.csv))
    if args.project:
        status = jira_config_status()
        if not status["configured"]:
            raise SystemExit(f"Jira not configured: {', '.join(status['missing'])}")
        return fetch_project_issues(args.project)
    return load_sample_backlog()


def _to_items(issues: list[dict[str, Any]]) -> list[BacklogItem]:
    items: list[BacklogItem] = []
    for issue in issues:
        try:
            items.append(issue_to_backlog_item(issue))
        except ValidationError as exc:
            LOGGER.warning("Skipping issue without key: %s", exc)
    return items


def _rng_sampler(seed: int) -> Sampler:
    rng = random.Random(seed)

    def _sampler(_key: str) -> float:
        return sample_from_rng(rng)

    return _sampler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forecast backlog delays under what-if risk drivers.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--csv", help="Backlog CSV (key, summary, duedate, assignee_id, ...).")
    source.add_argument("--project", help="Jira project key to fetch unresolved issues from.")
    parser.add_argument("--load", type=_driver, default=0.0, help="Cognitive load (0-100).")
    parser.add_argument("--complexity", type=_driver, default=0.0, help="System complexity (0-100).")
    parser.add_argument("--absence", type=_driver, default=0.0, help="Absence risk (0-100).")
    parser.add_argument("--shock-members", help="Comma separated assignee ids hit by the shock.")
    parser.add_argument(
        "--shock-action",
        choices=[action.value for action in ShockAction],
        default=ShockAction.SICK_3.value,
        help="Shock applied to the selected members.",
    )
    parser.add_argument("--today", type=_parse_today, default=None, help="Override today (YYYY-MM-DD).")
    parser.add_argument("--salt", default="", help="Salt for the per-item stable samples.")
    parser.add_argument("--seed", type=int, help="Draw samples from a seeded RNG instead of item keys.")
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")
    parser.add_argument("--save", action="store_true", help="Store a summary snapshot in the database.")
    return parser


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=os.getenv("BACKLOG_FORECAST_LOG_LEVEL", "INFO").upper(),
        format="%(levelname)s %(message)s",
    )
    args = build_parser().parse_args(argv)
    today = args.today or utc_today()

    drivers = RiskDrivers(
        cognitive_load=args.load,
        system_complexity=args.complexity,
        absence_risk=args.absence,
    )
    members = _parse_members(args.shock_members)
    shock = ShockDirective(frozenset(members), args.shock_action) if members else None

    sampler = _rng_sampler(args.seed) if args.seed is not None else make_sampler(args.salt)

    items = _to_items(_load_issues(args))
    forecast = forecast_backlog(items, drivers, today, shock=shock, sampler=sampler)
    summary = summarize_forecasts(forecast.results)

    if args.json:
        payload = {
            "today": today.isoformat(),
            "drivers": drivers.to_dict(),
            "shock": shock.to_dict() if shock else None,
            "results": [result.to_dict() for result in forecast.results],
            "skipped": [{"key": key, "error": error} for key, error in forecast.skipped],
            "summary": summary,
        }
        json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
    else:
        frame = forecasts_to_frame(forecast.rows)
        print(frame.to_string(index=False) if not frame.empty else "No backlog items.")
        for key, error in forecast.skipped:
            print(f"skipped {key}: {error}")

    if args.save:
        con = connect(default_db_path())
        init_db(con)
        snapshot_id = ForecastSnapshotRepository(con).save_snapshot(
            args.project or (Path(args.csv).stem if args.csv else "sample"),
            drivers.to_dict(),
            shock.to_dict() if shock else None,
            summary,
        )
        LOGGER.info("Saved snapshot %s", snapshot_id)

    LOGGER.info(
        "Summary: items=%s skipped=%s by_risk=%s",
        summary["items"],
        len(forecast.skipped),
        summary["by_risk_level"],
    )


if __name__ == "__main__":
    main()
