from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any

from backlog_forecast.domain.constants import (
    MAX_COMPLEXITY_DAYS,
    RISK_HIGH_DAYS,
    RISK_MEDIUM_DAYS,
    SICKNESS_BLOCK_DAYS,
)
from backlog_forecast.domain.models import (
    BacklogItem,
    Baseline,
    DurationBreakdown,
    ForecastResult,
    RiskDrivers,
    RiskLevel,
    ShockDirective,
    ValidationError,
)
from backlog_forecast.services.business_days import add_business_days

LOGGER = logging.getLogger(__name__)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).date()
    return value.date()


def utc_today(now: datetime | None = None) -> date:
    """Current calendar date in UTC, independent of the host time zone."""
    return _utc_date(now or datetime.now(timezone.utc))


def normalize_today(value: Any) -> date:
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value
    raise ValidationError(f"today must be a date, got {value!r}.")


def parse_due_date(value: Any) -> date | None:
    """Normalize a due date to a UTC calendar date.

    Date-only strings are read as UTC midnight; datetimes with an offset are
    converted to UTC before the time part is dropped.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Unsupported due date value: {value!r}.")
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return _utc_date(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValidationError(f"Malformed due date: {value!r}.") from exc


def _validate_sample(sample: Any) -> float:
    if isinstance(sample, bool) or not isinstance(sample, (int, float)):
        raise ValidationError(f"Random sample must be a number in [0, 1), got {sample!r}.")
    number = float(sample)
    if math.isnan(number) or not 0.0 <= number < 1.0:
        raise ValidationError(f"Random sample must be in [0, 1), got {sample!r}.")
    return number


def _whole_days(value: float) -> int:
    # 9 decimals drops float noise such as 1.29 * 100 == 129.00000000000003
    return math.ceil(round(value, 9))


def resolve_baseline(due_date: Any, today: Any) -> Baseline:
    today_value = normalize_today(today)
    due_value = parse_due_date(due_date)
    if due_value is None:
        return Baseline(today=today_value, due_date=None, is_overdue=False, remaining_days=0)
    return Baseline(
        today=today_value,
        due_date=due_value,
        is_overdue=due_value < today_value,
        remaining_days=max(0, (due_value - today_value).days),
    )


def aggregate_duration(
    remaining_days: int,
    drivers: RiskDrivers,
    sample: float,
    assignee_id: str | None = None,
    shock: ShockDirective | None = None,
) -> DurationBreakdown:
    sample_value = _validate_sample(sample)

    velocity_modifier = 1 + drivers.cognitive_load / 100
    complexity_days = _whole_days(drivers.system_complexity / 100 * MAX_COMPLEXITY_DAYS)

    is_sick = sample_value * 100 < drivers.absence_risk
    is_shocked = shock is not None and shock.applies_to(assignee_id)

    return DurationBreakdown(
        remaining_days=remaining_days,
        velocity_modifier=velocity_modifier,
        complexity_days=complexity_days,
        sickness_days=SICKNESS_BLOCK_DAYS if is_sick else 0,
        shock_days=shock.action.block_days if is_shocked else 0,
        is_sick=is_sick,
        is_shocked=is_shocked,
    )


def classify_risk(risk_days: int) -> RiskLevel:
    if risk_days >= RISK_HIGH_DAYS:
        return RiskLevel.HIGH
    if risk_days >= RISK_MEDIUM_DAYS:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def build_result(
    key: str,
    baseline: Baseline,
    breakdown: DurationBreakdown,
    simulated_date: date,
) -> ForecastResult:
    total_days = breakdown.total_days
    risk_days = max(0, _whole_days(total_days - baseline.remaining_days))
    if baseline.due_date is not None:
        delay_days = max(0, (simulated_date - baseline.due_date).days)
    else:
        delay_days = risk_days

    return ForecastResult(
        key=key,
        simulated_date=simulated_date,
        risk_days=risk_days,
        delay_days=delay_days,
        is_sick=breakdown.is_sick,
        is_shocked=breakdown.is_shocked,
        is_overdue=baseline.is_overdue,
        risk_level=classify_risk(risk_days),
        original_date=baseline.due_date,
        remaining_days=baseline.remaining_days,
        simulated_duration_days=total_days,
    )


def simulate_forecast(
    item: BacklogItem,
    drivers: RiskDrivers,
    today: date | datetime,
    sample: float,
    shock: ShockDirective | None = None,
) -> ForecastResult:
    """Forecast one backlog item under the given drivers.

    Remaining work is always measured from ``today`` so an overdue item is
    never walked from a date already in the past. ``sample`` is the caller's
    uniform draw in [0, 1) deciding the stochastic absence event; pass a
    stable per-item value to keep repeated runs identical.
    """
    baseline = resolve_baseline(item.due_date, today)
    breakdown = aggregate_duration(
        baseline.remaining_days,
        drivers,
        sample,
        assignee_id=item.assignee_id,
        shock=shock,
    )
    simulated_date = add_business_days(baseline.today, _whole_days(breakdown.total_days))
    result = build_result(item.key, baseline, breakdown, simulated_date)
    LOGGER.debug(
        "Forecast %s: duration=%.2f risk_days=%s level=%s",
        item.key,
        result.simulated_duration_days,
        result.risk_days,
        result.risk_level.value,
    )
    return result
