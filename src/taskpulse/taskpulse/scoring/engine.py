"""Employee of the Month ranking over a window of tasks.

The engine is a pure aggregation: it never mutates the tasks it is given, so
running it twice over the same tasks yields the same rankings in the same
order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from ..common.datetime_utils import ensure_aware, ms_to_hours, round_half_up
from ..core.constants import DEFAULT_TOP_PERFORMERS
from ..core.enums import TaskStatus
from ..tasks.model import Task
from .model import EmployeeOfTheMonthResult, EmployeeScore
from .rules.base import ScoringRules
from .rules.standard_rules import StandardScoringRules

logger = logging.getLogger(__name__)

SCORED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS)


@dataclass(frozen=True)
class _Contribution:
    points: int
    completed: bool
    in_progress: bool
    on_time: bool
    time_spent: int
    progress: Optional[float]


class ScoringEngine:
    def __init__(self, rules: ScoringRules | None = None, *, top_performers: int = DEFAULT_TOP_PERFORMERS):
        self._rules = rules or StandardScoringRules()
        self._top_performers = int(top_performers)

    def rank(self, tasks: Iterable[Task], *, period_start: datetime, period_end: datetime) -> EmployeeOfTheMonthResult:
        scores: Dict[int, EmployeeScore] = {}

        for task in tasks:
            try:
                if task.status not in SCORED_STATUSES:
                    continue
                assignees = list(task.assignees)
            except (AttributeError, TypeError) as exc:
                logger.warning("Skipping malformed task %r: %s", getattr(task, "task_id", None), exc)
                continue

            for assignee in assignees:
                try:
                    user_id = int(assignee.user_id)
                    contribution = self._score_pair(task, user_id)
                except (AttributeError, TypeError, ValueError) as exc:
                    logger.warning("Skipping task %s assignee %r: %s", task.task_id, assignee, exc)
                    continue
                self._apply(scores.setdefault(user_id, EmployeeScore(user_id=user_id)), contribution)

        for score in scores.values():
            self._finalize(score)

        # sorted() is stable, so ties keep discovery order.
        rankings = sorted(
            (s for s in scores.values() if s.tasks_completed > 0),
            key=lambda s: s.total_score,
            reverse=True,
        )
        return EmployeeOfTheMonthResult(
            period_start=period_start,
            period_end=period_end,
            all_rankings=rankings,
            top_limit=self._top_performers,
        )

    def _score_pair(self, task: Task, user_id: int) -> _Contribution:
        entry = task.ledger_for(user_id)
        time_spent = int(entry.total_time_spent) if entry is not None else 0
        if time_spent < 0:
            raise ValueError(f"negative time tracked: {time_spent}")

        points = 0
        completed = task.status == TaskStatus.COMPLETED
        on_time = False
        if completed:
            on_time = (
                task.completed_date is not None
                and task.due_date is not None
                and ensure_aware(task.completed_date) <= ensure_aware(task.due_date)
            )
            points += self._rules.completion_points(task, entry, on_time=on_time)
        else:
            points += self._rules.in_progress_points(task)

        percentage = float(task.progress.percentage or 0)
        progress = None
        if percentage > 0:
            progress = percentage
            points += self._rules.progress_points(percentage)

        return _Contribution(
            points=points,
            completed=completed,
            in_progress=not completed,
            on_time=on_time,
            time_spent=time_spent,
            progress=progress,
        )

    @staticmethod
    def _apply(score: EmployeeScore, c: _Contribution) -> None:
        score.total_score += c.points
        score.total_time_spent += c.time_spent
        if c.completed:
            score.tasks_completed += 1
            if c.on_time:
                score.on_time_completions += 1
            else:
                score.overdue_completions += 1
        if c.in_progress:
            score.tasks_in_progress += 1
        if c.progress is not None:
            score.progress_sum += c.progress
            score.progress_count += 1

    @staticmethod
    def _finalize(score: EmployeeScore) -> None:
        score.average_progress = (
            int(round_half_up(score.progress_sum / score.progress_count)) if score.progress_count else 0
        )
        worked = score.tasks_completed + score.tasks_in_progress
        score.completion_rate = int(round_half_up(score.tasks_completed / worked * 100)) if worked else 0
        score.on_time_rate = (
            int(round_half_up(score.on_time_completions / score.tasks_completed * 100)) if score.tasks_completed else 0
        )
        score.total_hours_worked = ms_to_hours(score.total_time_spent, digits=1)
