"""Weighted overall score and letter grade of a Performance record.

Weights: task completion 30%, attendance 25%, on-time delivery 20%, sales
conversion 25% for employees with at least one sales call. When there are no
sales calls the sales term and its weight are dropped and the remaining
weights are not rescaled, so the score tops out at 75.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Tuple

from ..common.datetime_utils import round_half_up
from ..core.enums import Grade

if TYPE_CHECKING:
    from .model import Performance

GRADE_THRESHOLDS: Tuple[Tuple[int, Grade], ...] = (
    (95, Grade.A_PLUS),
    (90, Grade.A),
    (85, Grade.B_PLUS),
    (80, Grade.B),
    (75, Grade.C_PLUS),
    (70, Grade.C),
    (60, Grade.D),
)


def _percent(numerator: float, denominator: float, *, empty: float = 0.0) -> float:
    if not denominator:
        return empty
    return numerator / denominator * 100


class PerformanceAggregator:
    TASK_WEIGHT = 0.30
    ATTENDANCE_WEIGHT = 0.25
    ON_TIME_WEIGHT = 0.20
    SALES_WEIGHT = 0.25

    def task_completion_rate(self, record: "Performance") -> float:
        return _percent(record.tasks_completed, record.tasks_assigned)

    def attendance_rate(self, record: "Performance") -> float:
        return _percent(record.attendance_days, record.total_working_days)

    def on_time_rate(self, record: "Performance") -> float:
        # Nothing assigned means nothing late.
        return _percent(record.tasks_assigned - record.tasks_overdue, record.tasks_assigned, empty=100.0)

    def sales_conversion_rate(self, record: "Performance") -> float:
        return _percent(record.sales_conversions, record.sales_calls)

    def raw_score(self, record: "Performance") -> float:
        score = (
            self.task_completion_rate(record) * self.TASK_WEIGHT
            + self.attendance_rate(record) * self.ATTENDANCE_WEIGHT
            + self.on_time_rate(record) * self.ON_TIME_WEIGHT
        )
        if record.sales_calls > 0:
            score += self.sales_conversion_rate(record) * self.SALES_WEIGHT
        return score

    def calculate_overall_score(self, record: "Performance") -> int:
        return int(round_half_up(self.raw_score(record)))

    @staticmethod
    def grade_for(score: int) -> Grade:
        for threshold, grade in GRADE_THRESHOLDS:
            if score >= threshold:
                return grade
        return Grade.F

    def rates(self, record: "Performance") -> Dict[str, float]:
        return {
            "taskCompletionRate": round_half_up(self.task_completion_rate(record), 2),
            "attendanceRate": round_half_up(self.attendance_rate(record), 2),
            "onTimeRate": round_half_up(self.on_time_rate(record), 2),
            "salesConversionRate": round_half_up(self.sales_conversion_rate(record), 2),
        }

    def apply_invariants(self, record: "Performance") -> bool:
        score = self.calculate_overall_score(record)
        grade = self.grade_for(score)
        changed = (score, grade) != (record.overall_score, record.grade)
        record.overall_score = score
        record.grade = grade
        return changed


_default = PerformanceAggregator()


def apply_invariants(record: "Performance") -> bool:
    """Recompute overall_score and grade; returns True when either changed."""
    return _default.apply_invariants(record)
