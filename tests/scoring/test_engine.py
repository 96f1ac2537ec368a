from __future__ import annotations

from datetime import timedelta

import pytest

from src.taskpulse.taskpulse.core.constants import MS_PER_HOUR
from src.taskpulse.taskpulse.core.enums import TaskStatus
from src.taskpulse.taskpulse.scoring.engine import ScoringEngine
from src.taskpulse.taskpulse.scoring.rules.base import ScoringRules
from src.taskpulse.taskpulse.scoring.rules.standard_rules import StandardScoringRules
from src.taskpulse.taskpulse.tasks.model import LedgerEntry


@pytest.fixture
def completed(make_task, fixed_now):
    """Completed task; due in `due_in`, finished `done_after` after creation."""

    def _make(*ids, due_in=timedelta(days=-5), done_at=None, hours=None, estimated_hours=None, percentage=0):
        task = make_task(*ids, status=TaskStatus.COMPLETED, due_in=due_in, estimated_hours=estimated_hours)
        task.completed_date = done_at or fixed_now + due_in - timedelta(days=1)
        task.progress.percentage = percentage
        if hours is not None:
            task.time_tracking = [LedgerEntry(user_id=u, total_time_spent=int(hours * MS_PER_HOUR)) for u in task.assignee_ids]
        return task

    return _make


def rank(tasks, fixed_now, **kwargs):
    return ScoringEngine(**kwargs).rank(
        tasks, period_start=fixed_now - timedelta(days=14), period_end=fixed_now + timedelta(days=16)
    )


def test_on_time_under_estimate_scores_100(completed, fixed_now):
    task = completed(10, estimated_hours=5, hours=4)

    result = rank([task], fixed_now)

    top = result.employee_of_the_month
    assert top.user_id == 10
    assert top.total_score == 100
    assert (top.tasks_completed, top.on_time_completions, top.overdue_completions) == (1, 1, 0)
    assert top.completion_rate == 100
    assert top.on_time_rate == 100
    assert top.total_hours_worked == 4.0


def test_late_without_estimate_and_progress_bonus(completed, fixed_now):
    task = completed(10, done_at=fixed_now, hours=6, percentage=100)

    top = rank([task], fixed_now).employee_of_the_month

    assert top.total_score == 50 + 10 + 10
    assert top.overdue_completions == 1
    assert top.on_time_rate == 0
    assert top.average_progress == 100


def test_over_estimate_gets_no_efficiency_bonus(completed, fixed_now):
    task = completed(10, estimated_hours=5, hours=5)
    assert rank([task], fixed_now).employee_of_the_month.total_score == 80


def test_missing_ledger_entry_gets_no_efficiency_bonus(completed, fixed_now):
    task = completed(10, estimated_hours=5)
    assert rank([task], fixed_now).employee_of_the_month.total_score == 80


@pytest.mark.parametrize("pct,points", [(0, 0), (9.9, 0), (10, 1), (55, 5), (99.9, 9), (100, 10)])
def test_progress_points_floor(pct, points):
    assert StandardScoringRules().progress_points(pct) == points


def test_in_progress_only_employees_are_not_ranked(completed, make_task, fixed_now):
    active = make_task(11, status=TaskStatus.IN_PROGRESS)
    active.progress.percentage = 40

    result = rank([completed(10, hours=1), active], fixed_now)

    assert [s.user_id for s in result.all_rankings] == [10]


def test_mixed_work_rates(completed, make_task, fixed_now):
    done = completed(10, percentage=100)
    active = make_task(10, 11, status=TaskStatus.IN_PROGRESS)
    active.progress.percentage = 45

    top = rank([done, active], fixed_now).employee_of_the_month

    assert top.total_score == (50 + 30 + 10) + (10 + 4)
    assert (top.tasks_completed, top.tasks_in_progress) == (1, 1)
    assert top.completion_rate == 50
    assert top.average_progress == 73  # (100 + 45) / 2 = 72.5, half up


def test_pending_and_cancelled_tasks_are_ignored(completed, make_task, fixed_now):
    tasks = [
        make_task(10, status=TaskStatus.PENDING),
        make_task(10, status=TaskStatus.CANCELLED),
        make_task(10, status=TaskStatus.OVERDUE),
    ]
    assert rank(tasks, fixed_now).all_rankings == []


def test_every_assignee_is_scored(completed, fixed_now):
    result = rank([completed(10, 11, 12)], fixed_now)
    assert sorted(s.user_id for s in result.all_rankings) == [10, 11, 12]


def test_ties_keep_discovery_order(completed, fixed_now):
    result = rank([completed(11), completed(10), completed(12)], fixed_now)
    assert [s.user_id for s in result.all_rankings] == [11, 10, 12]


def test_ranking_is_idempotent_and_pure(completed, make_task, fixed_now):
    tasks = [completed(10, hours=2), completed(11, estimated_hours=3, hours=1), make_task(10, status=TaskStatus.IN_PROGRESS)]
    before = [(t.status, t.progress.percentage, list(t.time_tracking)) for t in tasks]

    first = [s.to_dict() for s in rank(tasks, fixed_now).all_rankings]
    second = [s.to_dict() for s in rank(tasks, fixed_now).all_rankings]

    assert first == second
    assert [(t.status, t.progress.percentage, list(t.time_tracking)) for t in tasks] == before


def test_top_performers_limit(completed, fixed_now):
    tasks = [completed(uid) for uid in range(20, 28)]
    result = rank(tasks, fixed_now, top_performers=3)
    assert len(result.all_rankings) == 8
    assert [s.user_id for s in result.top_performers] == [20, 21, 22]


def test_malformed_pairs_are_skipped(completed, fixed_now, caplog):
    good = completed(10)
    bad = completed(11, 12)
    bad.assignees[0].user_id = "not-a-number"
    bad.time_tracking = [LedgerEntry(user_id=12, total_time_spent=-1)]

    result = rank([good, bad, object()], fixed_now)

    assert [s.user_id for s in result.all_rankings] == [10]
    assert "Skipping" in caplog.text


def test_custom_rules_plug_in(completed, fixed_now):
    class FlatRules(ScoringRules):
        def completion_points(self, task, entry, *, on_time):
            return 1

        def in_progress_points(self, task):
            return 0

        def progress_points(self, percentage):
            return 0

    result = rank([completed(10), completed(10), completed(11)], fixed_now, rules=FlatRules())
    assert [(s.user_id, s.total_score) for s in result.all_rankings] == [(10, 2), (11, 1)]


def test_result_shape(completed, fixed_now):
    body = rank([completed(10, hours=1.25)], fixed_now).to_dict()
    assert set(body) == {"employeeOfTheMonth", "topPerformers", "allRankings", "periodStart", "periodEnd"}
    assert body["employeeOfTheMonth"]["totalHoursWorked"] == 1.3
    assert body["employeeOfTheMonth"]["user"] is None
