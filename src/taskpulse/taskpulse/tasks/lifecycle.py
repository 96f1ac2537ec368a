from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..core.constants import COMPLETED_SESSION_NOTE, DEFAULT_STATUS_REASON, OVERDUE_REASON
from ..core.enums import Phase, TaskStatus
from ..core.exceptions import NotAssignedError
from .ledger import TimeTrackingLedger
from .model import LedgerEntry, StatusChange, Task

logger = logging.getLogger(__name__)

_CLOSED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


class TaskLifecycle:
    """Status state machine of a task.

    pending -> in_progress -> completed / cancelled, with `overdue` entered
    automatically by `apply_invariants` whenever the due date has passed on an
    open task.
    """

    def __init__(self, ledger: Optional[TimeTrackingLedger] = None):
        self._ledger = ledger or TimeTrackingLedger()

    @property
    def ledger(self) -> TimeTrackingLedger:
        return self._ledger

    def change_status(
        self,
        task: Task,
        new_status: TaskStatus,
        *,
        changed_by: Optional[int],
        reason: Optional[str] = None,
        now: datetime,
    ) -> bool:
        """Move the task to `new_status`, recording history and side effects.

        Returns False (and does nothing) when the status is unchanged.
        """
        new_status = TaskStatus(new_status)
        if task.status == new_status:
            return False

        task.status = new_status
        task.status_history.append(
            StatusChange(
                status=new_status,
                changed_by=changed_by,
                changed_at=now,
                reason=(reason or "").strip() or DEFAULT_STATUS_REASON,
            )
        )

        if new_status == TaskStatus.COMPLETED:
            self._enter_completed(task, now=now)
        elif new_status == TaskStatus.IN_PROGRESS and task.start_date is None:
            task.start_date = now

        logger.debug("Task %s -> %s (by %s)", task.task_id, new_status.value, changed_by)
        return True

    def complete(self, task: Task, user_id: int, *, now: datetime) -> None:
        if not task.is_assigned(user_id):
            raise NotAssignedError("You can only complete tasks assigned to you")
        if task.status == TaskStatus.COMPLETED:
            # Re-completing only closes sessions opened afterwards.
            self._ledger.stop_all(task, COMPLETED_SESSION_NOTE, now=now)
            return
        self.change_status(task, TaskStatus.COMPLETED, changed_by=user_id, reason="Task completed", now=now)

    def start_tracking(self, task: Task, user_id: int, *, now: datetime) -> LedgerEntry:
        entry = self._ledger.start(task, user_id, now=now)
        if task.status == TaskStatus.PENDING:
            self.change_status(task, TaskStatus.IN_PROGRESS, changed_by=user_id, reason="Time tracking started", now=now)
        return entry

    def _enter_completed(self, task: Task, *, now: datetime) -> None:
        task.completed_date = now
        self._ledger.stop_all(task, COMPLETED_SESSION_NOTE, now=now)
        task.progress.current_phase = Phase.COMPLETED
        task.progress.percentage = 100


def apply_invariants(task: Task, now: datetime) -> bool:
    """Recompute derived task state; call before every save and after every load.

    Returns True when the task changed. Idempotent, and never touches a task
    that is already completed, cancelled or overdue.
    """
    if task.status in _CLOSED_STATUSES or task.status == TaskStatus.OVERDUE:
        return False
    if not task.is_overdue(now):
        return False

    task.status = TaskStatus.OVERDUE
    task.status_history.append(
        StatusChange(status=TaskStatus.OVERDUE, changed_by=None, changed_at=now, reason=OVERDUE_REASON)
    )
    logger.info("Task %s is past its due date, marked overdue", task.task_id)
    return True
