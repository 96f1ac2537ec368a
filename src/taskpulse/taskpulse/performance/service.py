from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from ..attendance.repository import AttendanceSource
from ..common.datetime_utils import (
    ensure_aware,
    month_bounds,
    ms_to_hours,
    now_utc,
    parse_iso_datetime,
    round_half_up,
    working_days_between,
)
from ..common.pagination import Page, clamp_pagination
from ..common.validators import require_enum
from ..core.constants import DEFAULT_HISTORY_LIMIT, DEFAULT_PAGE_SIZE, SALES_DESIGNATION
from ..core.enums import AttendanceStatus, Grade, NotificationType, PerformancePeriod, TaskStatus
from ..core.exceptions import DuplicateRecordError, PermissionDenied, RecordNotFound, ValidationError
from ..notifications.model import NotificationEvent
from ..notifications.sink import LoggingNotificationSink, NotificationSink, dispatch
from ..sales.repository import SalesCallSource
from ..tasks.lifecycle import apply_invariants
from ..tasks.policy import Actor
from ..tasks.repository import TaskRepository
from ..users.model import Employee
from ..users.repository import EmployeeDirectory
from .aggregator import PerformanceAggregator
from .model import COUNTER_FIELDS, Performance
from .repository import PerformanceRepository

logger = logging.getLogger(__name__)

WINDOW_FIELDS = frozenset({"employee_id", "period", "start_date", "end_date"})
REVIEW_FIELDS = frozenset({"review_notes", "is_active"})


def _coerce_instant(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field_name} must be an ISO-8601 date")
    return parsed


class PerformanceService:
    def __init__(
        self,
        performances: PerformanceRepository,
        tasks: TaskRepository,
        employees: EmployeeDirectory,
        attendance: AttendanceSource,
        sales_calls: SalesCallSource,
        *,
        notifier: NotificationSink | None = None,
        aggregator: PerformanceAggregator | None = None,
    ):
        self._performances = performances
        self._tasks = tasks
        self._employees = employees
        self._attendance = attendance
        self._sales_calls = sales_calls
        self._notifier = notifier or LoggingNotificationSink()
        self._aggregator = aggregator or PerformanceAggregator()

    @property
    def aggregator(self) -> PerformanceAggregator:
        return self._aggregator

    @staticmethod
    def _require_manager(actor: Actor) -> None:
        if not actor.is_manager:
            raise PermissionDenied("Only administrators and project managers can manage performance records")

    def calculate_performance(
        self,
        actor: Actor,
        *,
        employee_id: int,
        period: PerformancePeriod | str,
        start_date: Any,
        end_date: Any,
        now: datetime | None = None,
    ) -> Performance:
        now = now or now_utc()
        self._require_manager(actor)

        period = require_enum(PerformancePeriod, period, "Period")
        start = _coerce_instant(start_date, "Start date")
        end = _coerce_instant(end_date, "End date")
        if start >= end:
            raise ValidationError("Start date must be before end date")

        existing = self._performances.find_window(
            employee_id=int(employee_id), period=period, start_date=start, end_date=end
        )
        if existing is not None:
            raise DuplicateRecordError("Performance record already exists for this period")

        employee = self._employees.get_by_id(int(employee_id))
        if employee is None:
            raise RecordNotFound("Employee not found")

        record = Performance(
            employee_id=employee.user_id,
            period=period,
            start_date=start,
            end_date=end,
            created_at=now,
            **self._gather(employee, start, end, now),
        )
        record = self._performances.save(record)
        logger.info(
            "Performance %s for employee %s (%s %s..%s): score=%s grade=%s",
            record.performance_id,
            employee.user_id,
            period.value,
            start.date(),
            end.date(),
            record.overall_score,
            record.grade.value,
        )
        return record

    def _gather(self, employee: Employee, start: datetime, end: datetime, now: datetime) -> Dict[str, Any]:
        tasks = list(self._tasks.list_created_between(start=start, end=end, assignee_id=employee.user_id))
        for task in tasks:
            apply_invariants(task, now)

        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        overdue = [
            t
            for t in tasks
            if ensure_aware(t.due_date) < end and t.status not in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)
        ]
        tracked_ms = 0
        for task in completed:
            entry = task.ledger_for(employee.user_id)
            if entry is not None:
                tracked_ms += entry.total_time_spent
        avg_hours = ms_to_hours(tracked_ms / len(completed)) if completed else 0

        records = self._attendance.list_for_user(employee.user_id, start_date=start.date(), end_date=end.date())

        counters: Dict[str, Any] = {
            "tasks_completed": len(completed),
            "tasks_assigned": len(tasks),
            "tasks_overdue": len(overdue),
            "average_task_completion_time": avg_hours,
            "attendance_days": sum(1 for r in records if r.is_present),
            "total_working_days": working_days_between(start.date(), end.date()),
            "late_arrivals": sum(1 for r in records if r.status == AttendanceStatus.LATE),
            "early_departures": sum(1 for r in records if r.status == AttendanceStatus.EARLY_LEAVE),
        }

        if employee.designation == SALES_DESIGNATION:
            calls = list(self._sales_calls.list_for_rep(employee.user_id, start=start, end=end))
            counters.update(
                {
                    "sales_calls": len(calls),
                    "sales_conversions": sum(1 for c in calls if c.is_successful),
                    "revenue_generated": sum(float(c.deal_value or 0) for c in calls),
                    "deals_closed": sum(1 for c in calls if c.deal_closed),
                }
            )
        return counters

    def employee_history(
        self,
        actor: Actor,
        employee_id: int,
        *,
        period: PerformancePeriod | str = PerformancePeriod.MONTHLY,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[Performance]:
        if not actor.is_manager and actor.user_id != int(employee_id):
            raise PermissionDenied("You can only view your own performance records")
        period = require_enum(PerformancePeriod, period, "Period")
        if int(limit) <= 0:
            raise ValidationError("Limit must be positive")
        return list(self._performances.list_for_employee(int(employee_id), period=period, limit=int(limit)))

    def list_performances(
        self,
        actor: Actor,
        *,
        period: PerformancePeriod | str | None = None,
        start_date: Any = None,
        end_date: Any = None,
        page: Any = 1,
        limit: Any = DEFAULT_PAGE_SIZE,
    ) -> Page[Performance]:
        """All records, newest created first; dates bound created_at."""
        self._require_manager(actor)
        period = require_enum(PerformancePeriod, period, "Period") if period else None
        start = _coerce_instant(start_date, "Start date") if start_date else None
        end = _coerce_instant(end_date, "End date") if end_date else None
        if start is not None and end is not None and start > end:
            raise ValidationError("Start date must be before end date")

        page, limit = clamp_pagination(page, limit)
        items, total = self._performances.list_page(
            period=period, created_from=start, created_to=end, offset=(page - 1) * limit, limit=limit
        )
        return Page(items=list(items), total=total, page=page, limit=limit)

    def update_performance(
        self,
        actor: Actor,
        performance_id: int,
        changes: Mapping[str, Any],
        *,
        now: datetime | None = None,
    ) -> Performance:
        now = now or now_utc()
        self._require_manager(actor)

        locked = WINDOW_FIELDS & set(changes)
        if locked:
            raise ValidationError(f"Performance window cannot be changed: {', '.join(sorted(locked))}")
        unknown = set(changes) - set(COUNTER_FIELDS) - REVIEW_FIELDS
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        record = self._performances.get_by_id(int(performance_id))
        if record is None:
            raise RecordNotFound("Performance record not found")

        counters = {k: v for k, v in changes.items() if k in COUNTER_FIELDS}
        if counters:
            record.update_counters(counters)
        if "review_notes" in changes:
            record.review_notes = str(changes["review_notes"] or "").strip()
        if "is_active" in changes:
            record.is_active = bool(changes["is_active"])
        record.reviewed_by = actor.user_id
        record.review_date = now
        self._aggregator.apply_invariants(record)

        return self._performances.save(record)

    def stats(
        self,
        actor: Actor,
        *,
        period: PerformancePeriod | str = PerformancePeriod.MONTHLY,
        start_date: Any = None,
        end_date: Any = None,
    ) -> Dict[str, Any]:
        self._require_manager(actor)
        period = require_enum(PerformancePeriod, period, "Period")
        start = _coerce_instant(start_date, "Start date") if start_date else None
        end = _coerce_instant(end_date, "End date") if end_date else None

        records = list(self._performances.list_by_period(period, start_date=start, end_date=end))
        scores = [r.overall_score for r in records]
        distribution: Dict[str, int] = {}
        for r in records:
            distribution[r.grade.value] = distribution.get(r.grade.value, 0) + 1

        return {
            "period": period.value,
            "totalRecords": len(records),
            "averageScore": round_half_up(sum(scores) / len(scores), 2) if scores else 0,
            "highestScore": max(scores) if scores else 0,
            "lowestScore": min(scores) if scores else 0,
            "gradeDistribution": {g.value: distribution[g.value] for g in Grade if g.value in distribution},
        }

    def monthly_top(self, month: int, year: int) -> Optional[Performance]:
        """Highest-scoring active monthly record inside the month; first seen wins ties."""
        if not 1 <= int(month) <= 12:
            raise ValidationError("Month must be between 1 and 12")
        start, end = month_bounds(int(month), int(year))

        best: Optional[Performance] = None
        for record in self._performances.list_by_period(PerformancePeriod.MONTHLY, start_date=start, end_date=end):
            if best is None or record.overall_score > best.overall_score:
                best = record
        return best

    def announce_monthly_top(self, actor: Actor, month: int, year: int, *, now: datetime | None = None) -> Optional[Performance]:
        now = now or now_utc()
        self._require_manager(actor)

        winner = self.monthly_top(month, year)
        if winner is None:
            return None

        label = datetime(int(year), int(month), 1).strftime("%B %Y")
        dispatch(
            self._notifier,
            [
                NotificationEvent(
                    recipient_id=winner.employee_id,
                    type=NotificationType.EMPLOYEE_OF_MONTH,
                    title="Employee of the Month",
                    message=(
                        f"Congratulations! You have been selected as Employee of the Month for {label} "
                        f"with a performance score of {winner.overall_score}%."
                    ),
                    sender_id=actor.user_id,
                    created_at=now,
                    data={
                        "performanceId": winner.performance_id,
                        "score": winner.overall_score,
                        "grade": winner.grade.value,
                    },
                )
            ],
        )
        return winner
