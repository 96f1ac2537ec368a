from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from src.taskpulse.taskpulse.core.enums import AssigneeRole, Role, TaskStatus
from src.taskpulse.taskpulse.core.exceptions import ConcurrentModificationError, DuplicateRecordError
from src.taskpulse.taskpulse.tasks.model import Assignee, Task
from src.taskpulse.taskpulse.tasks.policy import Actor
from src.taskpulse.taskpulse.users.model import Employee

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryTasks:
    """Copies on the way in and out so callers never share state with storage."""

    def __init__(self):
        self._next_id = 1
        self._rows: dict[int, Task] = {}
        self.saves = 0

    def get_by_id(self, task_id):
        task = self._rows.get(int(task_id))
        return copy.deepcopy(task) if task else None

    def list_created_between(self, *, start, end, statuses=None, assignee_id=None):
        out = []
        for task in self._rows.values():
            if not (start <= task.created_at <= end):
                continue
            if statuses and task.status not in statuses:
                continue
            if assignee_id is not None and not task.is_assigned(assignee_id):
                continue
            out.append(copy.deepcopy(task))
        return out

    def list_visible_to(self, user_id, filters=None):
        visible = [t for t in self._rows.values() if t.is_assigned(user_id) or t.assigned_by == user_id]
        return self._newest_first(visible, filters)

    def list_all(self, filters=None):
        return self._newest_first(self._rows.values(), filters)

    @staticmethod
    def _newest_first(tasks, filters):
        rows = [t for t in tasks if filters is None or filters.matches(t)]
        rows.sort(key=lambda t: (t.created_at, t.task_id), reverse=True)
        return [copy.deepcopy(t) for t in rows]

    def save(self, task):
        self.saves += 1
        if task.task_id is None:
            task.task_id = self._next_id
            self._next_id += 1
            task.version = 0
        else:
            stored = self._rows.get(task.task_id)
            if stored is not None and stored.version != task.version:
                raise ConcurrentModificationError()
            task.version += 1
        self._rows[task.task_id] = copy.deepcopy(task)
        return task

    def delete(self, task_id):
        return self._rows.pop(int(task_id), None) is not None

    # test helper
    def stored(self, task_id) -> Task:
        return self._rows[int(task_id)]


class InMemoryEmployees:
    def __init__(self, employees):
        self._by_id = {e.user_id: e for e in employees}

    def get_by_id(self, user_id):
        return self._by_id.get(int(user_id))

    def get_many(self, user_ids):
        return {int(u): self._by_id[int(u)] for u in user_ids if int(u) in self._by_id}


class RecordingSink:
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    def send(self, event):
        if self.fail:
            raise RuntimeError("mail server down")
        self.events.append(event)


class InMemoryAttendance:
    def __init__(self, records=()):
        self.records = list(records)

    def list_for_user(self, user_id, *, start_date, end_date):
        return [r for r in self.records if r.user_id == user_id and start_date <= r.work_date <= end_date]


class InMemorySalesCalls:
    def __init__(self, calls=()):
        self.calls = list(calls)

    def list_for_rep(self, sales_rep_id, *, start, end):
        return [c for c in self.calls if c.sales_rep_id == sales_rep_id and start <= c.scheduled_date <= end]


class InMemoryPerformances:
    def __init__(self):
        self._next_id = 1
        self._rows = {}

    def get_by_id(self, performance_id):
        record = self._rows.get(int(performance_id))
        return copy.deepcopy(record) if record else None

    def find_window(self, *, employee_id, period, start_date, end_date):
        for r in self._rows.values():
            if (r.employee_id, r.period, r.start_date, r.end_date) == (employee_id, period, start_date, end_date):
                return copy.deepcopy(r)
        return None

    def list_for_employee(self, employee_id, *, period, limit):
        rows = [r for r in self._rows.values() if r.employee_id == employee_id and r.period == period and r.is_active]
        rows.sort(key=lambda r: r.start_date, reverse=True)
        return [copy.deepcopy(r) for r in rows[:limit]]

    def list_by_period(self, period, *, start_date=None, end_date=None):
        return [
            copy.deepcopy(r)
            for r in self._rows.values()
            if r.period == period
            and r.is_active
            and (start_date is None or r.start_date >= start_date)
            and (end_date is None or r.end_date <= end_date)
        ]

    def list_page(self, *, period=None, created_from=None, created_to=None, offset=0, limit=10):
        rows = [
            r
            for r in self._rows.values()
            if (period is None or r.period == period)
            and (created_from is None or r.created_at >= created_from)
            and (created_to is None or r.created_at <= created_to)
        ]
        rows.sort(key=lambda r: (r.created_at, r.performance_id), reverse=True)
        return [copy.deepcopy(r) for r in rows[offset : offset + limit]], len(rows)

    def save(self, record):
        if record.performance_id is None:
            if self.find_window(
                employee_id=record.employee_id,
                period=record.period,
                start_date=record.start_date,
                end_date=record.end_date,
            ):
                raise DuplicateRecordError()
            record.performance_id = self._next_id
            self._next_id += 1
        self._rows[record.performance_id] = copy.deepcopy(record)
        return record


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def employees():
    return InMemoryEmployees(
        [
            Employee(user_id=1, full_name="Admin", role=Role.ADMIN),
            Employee(user_id=2, full_name="Priya PM", role=Role.PROJECT_MANAGER),
            Employee(user_id=10, full_name="Ana", role=Role.EMPLOYEE, designation="developer"),
            Employee(user_id=11, full_name="Ben", role=Role.EMPLOYEE, designation="developer"),
            Employee(user_id=12, full_name="Cleo", role=Role.EMPLOYEE, designation="sales"),
            Employee(user_id=13, full_name="Dev Lead", role=Role.EMPLOYEE, designation="project_manager"),
            Employee(user_id=99, full_name="Gone", role=Role.EMPLOYEE, is_active=False),
        ]
    )


@pytest.fixture
def task_repo():
    return InMemoryTasks()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=1, role=Role.ADMIN)


@pytest.fixture
def pm() -> Actor:
    return Actor(user_id=2, role=Role.PROJECT_MANAGER)


@pytest.fixture
def ana() -> Actor:
    return Actor(user_id=10, role=Role.EMPLOYEE, designation="developer")


@pytest.fixture
def ben() -> Actor:
    return Actor(user_id=11, role=Role.EMPLOYEE, designation="developer")


@pytest.fixture
def make_task(fixed_now):
    """Build an unsaved task; the first assignee is primary."""

    def _make(
        *assignee_ids: int,
        status: TaskStatus = TaskStatus.PENDING,
        due_in: timedelta = timedelta(days=7),
        created_at: Optional[datetime] = None,
        estimated_hours: Optional[float] = None,
        assigned_by: int = 2,
    ) -> Task:
        ids = assignee_ids or (10,)
        return Task(
            task_id=None,
            title="Ship the release",
            description="Cut, test and publish",
            assigned_by=assigned_by,
            due_date=fixed_now + due_in,
            assignees=[
                Assignee(
                    user_id=u,
                    role=AssigneeRole.PRIMARY if i == 0 else AssigneeRole.COLLABORATOR,
                    assigned_at=fixed_now,
                )
                for i, u in enumerate(ids)
            ],
            status=status,
            estimated_hours=estimated_hours,
            created_at=created_at or fixed_now,
            updated_at=created_at or fixed_now,
        )

    return _make


@pytest.fixture
def attendance_source():
    return InMemoryAttendance()


@pytest.fixture
def sales_source():
    return InMemorySalesCalls()


@pytest.fixture
def performance_repo():
    return InMemoryPerformances()


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)
