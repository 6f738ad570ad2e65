from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pandas as pd

from backlog_forecast.domain.constants import (
    ADVICE_CRITICAL,
    ADVICE_HIGH,
    ADVICE_MODERATE,
    PROBABILITY_COMPLEXITY_WEIGHT,
    PROBABILITY_LOAD_WEIGHT,
    PROBABILITY_STOCHASTIC_SPAN,
)
from backlog_forecast.domain.models import (
    BacklogItem,
    ForecastResult,
    RiskDrivers,
    RiskLevel,
    ShockDirective,
    ValidationError,
)
from backlog_forecast.services.forecast import simulate_forecast
from backlog_forecast.services.seeding import stable_sample

LOGGER = logging.getLogger(__name__)

Sampler = Callable[[str], float]

FRAME_COLUMNS = [
    "Key",
    "Summary",
    "Assignee",
    "Due date",
    "Simulated date",
    "Delay days",
    "Risk days",
    "Risk",
    "Overdue",
    "Sick",
    "Shocked",
]

RISK_LEVEL_ADVICE = {
    RiskLevel.LOW: "On track. Keep monitoring for local bottlenecks.",
    RiskLevel.MEDIUM: "Friction building up. Protect focus time and trim integration scope.",
    RiskLevel.HIGH: "Delivery at risk. Re-plan the due date or swarm on this item.",
}


@dataclass(frozen=True)
class BacklogForecast:
    rows: list[tuple[BacklogItem, ForecastResult]] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def results(self) -> list[ForecastResult]:
        return [result for _, result in self.rows]


def make_sampler(salt: str = "") -> Sampler:
    def _sampler(key: str) -> float:
        return stable_sample(key, salt=salt)

    return _sampler


def forecast_backlog(
    items: Iterable[BacklogItem],
    drivers: RiskDrivers,
    today: date,
    shock: ShockDirective | None = None,
    sampler: Sampler | None = None,
) -> BacklogForecast:
    """Forecast every item, skipping the ones with invalid input."""
    sample_for = sampler or make_sampler()
    rows: list[tuple[BacklogItem, ForecastResult]] = []
    skipped: list[tuple[str, str]] = []
    for item in items:
        try:
            result = simulate_forecast(item, drivers, today, sample_for(item.key), shock=shock)
        except ValidationError as exc:
            LOGGER.warning("Skipping %s: %s", item.key, exc)
            skipped.append((item.key, str(exc)))
            continue
        rows.append((item, result))
    return BacklogForecast(rows=rows, skipped=skipped)


def summarize_forecasts(results: list[ForecastResult]) -> dict[str, Any]:
    by_level = {level.value: 0 for level in RiskLevel}
    for result in results:
        by_level[result.risk_level.value] += 1
    delays = [result.delay_days for result in results]
    risk_days = [result.risk_days for result in results]
    return {
        "items": len(results),
        "by_risk_level": by_level,
        "overdue": sum(1 for result in results if result.is_overdue),
        "sick": sum(1 for result in results if result.is_sick),
        "shocked": sum(1 for result in results if result.is_shocked),
        "total_delay_days": sum(delays),
        "max_delay_days": max(delays) if delays else 0,
        "mean_risk_days": (sum(risk_days) / len(risk_days)) if risk_days else 0.0,
        "latest_date": max(result.simulated_date for result in results).isoformat()
        if results
        else None,
    }


def forecasts_to_frame(rows: list[tuple[BacklogItem, ForecastResult]]) -> pd.DataFrame:
    records = []
    for item, result in rows:
        records.append(
            {
                "Key": item.key,
                "Summary": item.summary,
                "Assignee": item.assignee_name or item.assignee_id or "Unassigned",
                "Due date": result.original_date.isoformat() if result.original_date else "—",
                "Simulated date": result.simulated_date.isoformat(),
                "Delay days": result.delay_days,
                "Risk days": result.risk_days,
                "Risk": result.risk_level.value,
                "Overdue": result.is_overdue,
                "Sick": result.is_sick,
                "Shocked": result.is_shocked,
            }
        )
    return pd.DataFrame(records, columns=FRAME_COLUMNS)


def delay_probability(cognitive_load: float, system_complexity: float, sample: float) -> int:
    """Backlog-wide probability of delay in percent.

    Load and complexity contribute 40% each; ``sample`` scales a 0-20 point
    stochastic term for emergent effects.
    """
    drivers = RiskDrivers(cognitive_load=cognitive_load, system_complexity=system_complexity)
    if isinstance(sample, bool) or not isinstance(sample, (int, float)) or not 0 <= sample < 1:
        raise ValidationError(f"Random sample must be in [0, 1), got {sample!r}.")
    base = (
        drivers.cognitive_load * PROBABILITY_LOAD_WEIGHT
        + drivers.system_complexity * PROBABILITY_COMPLEXITY_WEIGHT
        + sample * PROBABILITY_STOCHASTIC_SPAN
    )
    # half-up rounding, not banker's
    return max(0, min(100, math.floor(base + 0.5)))


def strategic_advice(probability: int | None) -> str | None:
    if probability is None:
        return None
    if probability >= ADVICE_CRITICAL:
        return (
            "Critical emergent risk detected. Immediate scope reduction and "
            "cross-team swarming recommended."
        )
    if probability >= ADVICE_HIGH:
        return (
            "High delay probability. Immediate scope reduction recommended and "
            "rebalancing of WIP limits."
        )
    if probability >= ADVICE_MODERATE:
        return (
            "Moderate risk. Consider simplifying system interactions and protecting "
            "focus time for the team."
        )
    return (
        "Low projected delay risk. Maintain current workflow guardrails but monitor "
        "for local bottlenecks."
    )


def advice_severity(probability: int) -> str:
    if probability >= ADVICE_CRITICAL:
        return "error"
    if probability >= ADVICE_HIGH:
        return "warning"
    return "info"


def risk_level_advice(level: RiskLevel) -> str:
    return RISK_LEVEL_ADVICE[level]
