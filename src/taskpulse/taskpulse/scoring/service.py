from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import ensure_aware, month_bounds, now_utc
from ..core.exceptions import ValidationError
from ..tasks.lifecycle import apply_invariants
from ..tasks.repository import TaskRepository
from ..users.repository import EmployeeDirectory
from .engine import SCORED_STATUSES, ScoringEngine
from .model import EmployeeOfTheMonthResult

logger = logging.getLogger(__name__)


class ScoringService:
    def __init__(
        self,
        tasks: TaskRepository,
        employees: EmployeeDirectory,
        *,
        engine: Optional[ScoringEngine] = None,
    ):
        self._tasks = tasks
        self._employees = employees
        self._engine = engine or ScoringEngine()

    def calculate_employee_of_the_month(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        now: Optional[datetime] = None,
    ) -> EmployeeOfTheMonthResult:
        """Rank employees over tasks created in [start, end] (default: current month)."""
        now = now or now_utc()
        if start is None or end is None:
            start, end = month_bounds(now.month, now.year)
        start, end = ensure_aware(start), ensure_aware(end)
        if start > end:
            raise ValidationError("Start date must be before end date")

        tasks = list(self._tasks.list_created_between(start=start, end=end, statuses=SCORED_STATUSES))
        # Invariants are applied in memory only; ranking never writes.
        for task in tasks:
            apply_invariants(task, now)

        result = self._engine.rank(tasks, period_start=start, period_end=end)

        people = self._employees.get_many(s.user_id for s in result.all_rankings)
        for score in result.all_rankings:
            score.employee = people.get(score.user_id)

        logger.info(
            "Employee of the month %s..%s: %d ranked, winner=%s",
            start.date(),
            end.date(),
            len(result.all_rankings),
            result.employee_of_the_month.user_id if result.employee_of_the_month else None,
        )
        return result
