from __future__ import annotations

from datetime import timedelta

import pytest

from src.taskpulse.taskpulse.core.enums import AssigneeRole
from src.taskpulse.taskpulse.core.exceptions import (
    AlreadyAssignedError,
    LastAssigneeError,
    NotAssignedError,
    ValidationError,
)
from src.taskpulse.taskpulse.tasks.ledger import TimeTrackingLedger
from src.taskpulse.taskpulse.tasks.roster import AssigneeRoster


def test_add_appends_assignee_and_fresh_ledger_entry(make_task, fixed_now):
    task = make_task(10)
    assignee = AssigneeRoster().add(task, 11, now=fixed_now)

    assert assignee.role == AssigneeRole.COLLABORATOR
    assert task.assignee_ids == [10, 11]
    entry = task.ledger_for(11)
    assert entry.total_time_spent == 0 and entry.sessions == [] and not entry.is_active


def test_add_twice_fails(make_task, fixed_now):
    task = make_task(10)
    with pytest.raises(AlreadyAssignedError):
        AssigneeRoster().add(task, 10, now=fixed_now)


def test_add_rejects_unknown_role(make_task, fixed_now):
    with pytest.raises(ValidationError):
        AssigneeRoster().add(make_task(10), 11, "boss", now=fixed_now)


def test_remove_last_assignee_fails_and_keeps_roster(make_task, fixed_now):
    task = make_task(10)
    with pytest.raises(LastAssigneeError):
        AssigneeRoster().remove(task, 10, now=fixed_now)
    assert task.assignee_ids == [10]


def test_remove_unknown_user_fails(make_task, fixed_now):
    with pytest.raises(NotAssignedError):
        AssigneeRoster().remove(make_task(10, 11), 12, now=fixed_now)


def test_remove_stops_active_session_then_drops_entries(make_task, fixed_now):
    ledger = TimeTrackingLedger()
    roster = AssigneeRoster(ledger)
    task = make_task(10, 11)
    ledger.start(task, 11, now=fixed_now)

    roster.remove(task, 11, now=fixed_now + timedelta(minutes=10))

    assert task.assignee_ids == [10]
    assert task.ledger_for(11) is None
    assert not task.is_being_tracked


def test_primary_assignee_falls_back_to_first(make_task):
    task = make_task(10, 11)
    assert AssigneeRoster.primary_assignee(task).user_id == 10

    task.assignees[0].role = AssigneeRole.REVIEWER
    task.assignees[1].role = AssigneeRole.PRIMARY
    assert AssigneeRoster.primary_assignee(task).user_id == 11

    task.assignees[1].role = AssigneeRole.COLLABORATOR
    assert AssigneeRoster.primary_assignee(task).user_id == 10
