from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..common.validators import require_enum
from ..core.constants import REMOVED_SESSION_NOTE
from ..core.enums import AssigneeRole
from ..core.exceptions import AlreadyAssignedError, LastAssigneeError, NotAssignedError
from .ledger import TimeTrackingLedger
from .model import Assignee, LedgerEntry, Task


class AssigneeRoster:
    """Multi-assignee membership; a task always keeps at least one assignee."""

    def __init__(self, ledger: Optional[TimeTrackingLedger] = None):
        self._ledger = ledger or TimeTrackingLedger()

    def add(self, task: Task, user_id: int, role: AssigneeRole | str = AssigneeRole.COLLABORATOR, *, now: datetime) -> Assignee:
        role = require_enum(AssigneeRole, role, "Assignee role")
        if task.is_assigned(user_id):
            raise AlreadyAssignedError()

        assignee = Assignee(user_id=user_id, role=role, assigned_at=now)
        task.assignees.append(assignee)
        # A previous membership may have left an entry behind; start from zero.
        task.time_tracking = [e for e in task.time_tracking if e.user_id != user_id]
        task.time_tracking.append(LedgerEntry(user_id=user_id, last_activity=now))
        return assignee

    def remove(self, task: Task, user_id: int, *, now: datetime) -> None:
        if len(task.assignees) <= 1:
            raise LastAssigneeError()
        if not task.is_assigned(user_id):
            raise NotAssignedError()

        entry = task.ledger_for(user_id)
        if entry is not None and entry.is_active:
            self._ledger.stop(task, user_id, REMOVED_SESSION_NOTE, now=now)

        task.assignees = [a for a in task.assignees if a.user_id != user_id]
        task.time_tracking = [e for e in task.time_tracking if e.user_id != user_id]

    @staticmethod
    def primary_assignee(task: Task) -> Optional[Assignee]:
        return task.primary_assignee
