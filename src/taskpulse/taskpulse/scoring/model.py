from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..common.datetime_utils import to_iso
from ..users.model import Employee


@dataclass
class EmployeeScore:
    """Running score record of one employee over a scoring window."""

    user_id: int
    total_score: int = 0
    tasks_completed: int = 0
    tasks_in_progress: int = 0
    total_time_spent: int = 0  # milliseconds
    on_time_completions: int = 0
    overdue_completions: int = 0
    progress_sum: float = 0
    progress_count: int = 0

    # Filled by the post-pass.
    average_progress: int = 0
    completion_rate: int = 0
    on_time_rate: int = 0
    total_hours_worked: float = 0.0

    employee: Optional[Employee] = None

    def to_dict(self) -> Dict[str, Any]:
        user = None
        if self.employee is not None:
            user = {
                "id": self.employee.user_id,
                "fullName": self.employee.full_name,
                "email": self.employee.email,
                "designation": self.employee.designation,
            }
        return {
            "userId": self.user_id,
            "user": user,
            "totalScore": self.total_score,
            "tasksCompleted": self.tasks_completed,
            "tasksInProgress": self.tasks_in_progress,
            "totalTimeSpent": self.total_time_spent,
            "onTimeCompletions": self.on_time_completions,
            "overdueCompletions": self.overdue_completions,
            "averageProgress": self.average_progress,
            "completionRate": self.completion_rate,
            "onTimeRate": self.on_time_rate,
            "totalHoursWorked": self.total_hours_worked,
        }


@dataclass
class EmployeeOfTheMonthResult:
    period_start: datetime
    period_end: datetime
    all_rankings: List[EmployeeScore] = field(default_factory=list)
    top_limit: int = 5

    @property
    def employee_of_the_month(self) -> Optional[EmployeeScore]:
        return self.all_rankings[0] if self.all_rankings else None

    @property
    def top_performers(self) -> List[EmployeeScore]:
        return self.all_rankings[: self.top_limit]

    def to_dict(self) -> Dict[str, Any]:
        winner = self.employee_of_the_month
        return {
            "employeeOfTheMonth": winner.to_dict() if winner else None,
            "topPerformers": [s.to_dict() for s in self.top_performers],
            "allRankings": [s.to_dict() for s in self.all_rankings],
            "periodStart": to_iso(self.period_start),
            "periodEnd": to_iso(self.period_end),
        }
