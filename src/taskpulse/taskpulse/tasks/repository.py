from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import TaskStatus
from .model import Task


@dataclass(frozen=True)
class TaskFilter:
    """Stored-field filters for task listings.

    Status is not part of it: status is derived on load, so callers filter
    on it after applying invariants.
    """

    assigned_to: Optional[int] = None
    assigned_by: Optional[int] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, task: Task) -> bool:
        if self.assigned_to is not None and not task.is_assigned(self.assigned_to):
            return False
        if self.assigned_by is not None and task.assigned_by != self.assigned_by:
            return False
        if self.created_from is not None and (task.created_at is None or task.created_at < self.created_from):
            return False
        if self.created_to is not None and (task.created_at is None or task.created_at > self.created_to):
            return False
        if self.search:
            needle = self.search.lower()
            return needle in task.title.lower() or needle in task.description.lower()
        return True


class TaskRepository(Protocol):
    def get_by_id(self, task_id: int) -> Optional[Task]:
        raise NotImplementedError

    def list_created_between(
        self,
        *,
        start: datetime,
        end: datetime,
        statuses: Optional[Sequence[TaskStatus]] = None,
        assignee_id: Optional[int] = None,
    ) -> Sequence[Task]:
        """Tasks whose `created_at` falls in [start, end], oldest first."""

        raise NotImplementedError

    def list_visible_to(self, user_id: int, filters: Optional[TaskFilter] = None) -> Sequence[Task]:
        """Tasks the user is assigned to or created, newest first."""

        raise NotImplementedError

    def list_all(self, filters: Optional[TaskFilter] = None) -> Sequence[Task]:
        """Newest first."""

        raise NotImplementedError

    def save(self, task: Task) -> Task:
        """Insert (task_id is None) or update guarded by `task.version`.

        Raises ConcurrentModificationError when the stored version moved on.
        """

        raise NotImplementedError

    def delete(self, task_id: int) -> bool:
        raise NotImplementedError
