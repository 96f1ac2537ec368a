from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Mapping, Optional

from ..common.validators import require_enum, require_non_negative
from ..core.enums import Grade, PerformancePeriod
from ..core.exceptions import ValidationError
from .aggregator import apply_invariants

COUNTER_FIELDS = (
    "tasks_completed",
    "tasks_assigned",
    "tasks_overdue",
    "average_task_completion_time",
    "attendance_days",
    "total_working_days",
    "late_arrivals",
    "early_departures",
    "sales_calls",
    "sales_conversions",
    "revenue_generated",
    "deals_closed",
)


@dataclass
class Performance:
    """Materialized performance snapshot of one employee over one window.

    `overall_score` and `grade` are derived: they are recomputed whenever a
    counter changes, through `update_counters`.
    """

    employee_id: int
    period: PerformancePeriod
    start_date: datetime
    end_date: datetime

    tasks_completed: int = 0
    tasks_assigned: int = 0
    tasks_overdue: int = 0
    average_task_completion_time: float = 0  # hours
    attendance_days: int = 0
    total_working_days: int = 0
    late_arrivals: int = 0
    early_departures: int = 0
    sales_calls: int = 0
    sales_conversions: int = 0
    revenue_generated: float = 0
    deals_closed: int = 0

    overall_score: int = 0
    grade: Grade = Grade.F

    performance_id: Optional[int] = None
    reviewed_by: Optional[int] = None
    review_date: Optional[datetime] = None
    review_notes: str = ""
    is_active: bool = True
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.period = require_enum(PerformancePeriod, self.period, "Period")
        for name in COUNTER_FIELDS:
            setattr(self, name, _counter(name, getattr(self, name)))
        apply_invariants(self)

    def update_counters(self, changes: Mapping[str, Any]) -> None:
        """Set one or more counters, validating them and recomputing score/grade."""
        unknown = set(changes) - set(COUNTER_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown counter(s): {', '.join(sorted(unknown))}")
        validated = {name: _counter(name, value) for name, value in changes.items()}
        for name, value in validated.items():
            setattr(self, name, value)
        apply_invariants(self)

    def counters(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name in COUNTER_FIELDS}


def _counter(name: str, value: Any):
    label = name.replace("_", " ").capitalize()
    number = require_non_negative(value, label)
    if name in ("average_task_completion_time", "revenue_generated"):
        return number
    if not number.is_integer():
        raise ValidationError(f"{label} must be a whole number")
    return int(number)
