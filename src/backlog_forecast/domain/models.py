from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from backlog_forecast.domain.constants import DRIVER_MAX, DRIVER_MIN, SICKNESS_BLOCK_DAYS


class ValidationError(ValueError):
    """Raised for malformed forecast inputs. Never coerced silently."""


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ShockAction(str, Enum):
    SICK_3 = "sick3"

    @property
    def block_days(self) -> int:
        return SICKNESS_BLOCK_DAYS

    @property
    def label(self) -> str:
        return "Sick leave (3 days)"


def _driver_value(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number in [0, 100], got {value!r}.")
    number = float(value)
    if math.isnan(number) or not DRIVER_MIN <= number <= DRIVER_MAX:
        raise ValidationError(f"{name} must be in [0, 100], got {value!r}.")
    return number


@dataclass(frozen=True)
class BacklogItem:
    key: str
    due_date: date | datetime | str | None = None
    assignee_id: str | None = None
    summary: str = ""
    status: str | None = None
    priority: str | None = None
    assignee_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key.strip():
            raise ValidationError("Backlog item key is required.")
        if self.assignee_id == "":
            object.__setattr__(self, "assignee_id", None)


@dataclass(frozen=True)
class RiskDrivers:
    cognitive_load: float = 0.0
    system_complexity: float = 0.0
    absence_risk: float = 0.0

    def __post_init__(self) -> None:
        for name in ("cognitive_load", "system_complexity", "absence_risk"):
            object.__setattr__(self, name, _driver_value(name, getattr(self, name)))

    def to_dict(self) -> dict[str, float]:
        return {
            "cognitive_load": self.cognitive_load,
            "system_complexity": self.system_complexity,
            "absence_risk": self.absence_risk,
        }


@dataclass(frozen=True)
class ShockDirective:
    affected_member_ids: frozenset[str] = field(default_factory=frozenset)
    action: ShockAction = ShockAction.SICK_3

    def __post_init__(self) -> None:
        if isinstance(self.affected_member_ids, str):
            raise ValidationError(
                f"affected_member_ids must be a collection of ids, got {self.affected_member_ids!r}."
            )
        object.__setattr__(
            self,
            "affected_member_ids",
            frozenset(member for member in self.affected_member_ids if member),
        )
        if not isinstance(self.action, ShockAction):
            try:
                object.__setattr__(self, "action", ShockAction(self.action))
            except ValueError as exc:
                raise ValidationError(f"Unknown shock action: {self.action!r}.") from exc

    def applies_to(self, assignee_id: str | None) -> bool:
        return bool(assignee_id) and assignee_id in self.affected_member_ids

    def to_dict(self) -> dict[str, Any]:
        return {
            "affected_member_ids": sorted(self.affected_member_ids),
            "action": self.action.value,
        }


@dataclass(frozen=True)
class Baseline:
    today: date
    due_date: date | None
    is_overdue: bool
    remaining_days: int


@dataclass(frozen=True)
class DurationBreakdown:
    remaining_days: int
    velocity_modifier: float
    complexity_days: int
    sickness_days: int
    shock_days: int
    is_sick: bool
    is_shocked: bool

    @property
    def total_days(self) -> float:
        return (
            self.remaining_days * self.velocity_modifier
            + self.complexity_days
            + self.sickness_days
            + self.shock_days
        )


@dataclass(frozen=True)
class ForecastResult:
    key: str
    simulated_date: date
    risk_days: int
    delay_days: int
    is_sick: bool
    is_shocked: bool
    is_overdue: bool
    risk_level: RiskLevel
    original_date: date | None
    remaining_days: int = 0
    simulated_duration_days: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "simulated_date": self.simulated_date.isoformat(),
            "delay_days": self.delay_days,
            "risk_days": self.risk_days,
            "is_sick": self.is_sick,
            "is_shocked": self.is_shocked,
            "risk_level": self.risk_level.value,
            "is_overdue": self.is_overdue,
            "original_date": self.original_date.isoformat() if self.original_date else None,
            "remaining_days": self.remaining_days,
            "simulated_duration_days": self.simulated_duration_days,
        }
