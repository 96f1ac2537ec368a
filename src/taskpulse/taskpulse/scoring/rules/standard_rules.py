from __future__ import annotations

import math
from typing import Optional

from ...core.constants import MS_PER_HOUR
from ...tasks.model import LedgerEntry, Task
from .base import ScoringRules


class StandardScoringRules(ScoringRules):
    """Standard rule: 50 for completing, +30 on time or +10 late, +20 when
    finished under the estimate; 10 for active work; up to 10 for progress."""

    COMPLETION = 50
    ON_TIME_BONUS = 30
    LATE_BONUS = 10
    EFFICIENCY_BONUS = 20
    ACTIVE_WORK = 10

    def completion_points(self, task: Task, entry: Optional[LedgerEntry], *, on_time: bool) -> int:
        points = self.COMPLETION + (self.ON_TIME_BONUS if on_time else self.LATE_BONUS)
        if task.estimated_hours and entry is not None:
            actual_hours = entry.total_time_spent / MS_PER_HOUR
            if actual_hours < float(task.estimated_hours):
                points += self.EFFICIENCY_BONUS
        return points

    def in_progress_points(self, task: Task) -> int:
        return self.ACTIVE_WORK

    def progress_points(self, percentage: float) -> int:
        return int(math.floor(float(percentage) / 10))
