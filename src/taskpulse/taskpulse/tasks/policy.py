from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import PROJECT_MANAGER_DESIGNATION
from ..core.enums import Role
from .model import Task


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as provided by the identity layer."""

    user_id: int
    role: Role
    designation: Optional[str] = None

    @property
    def is_manager(self) -> bool:
        return self.role in {Role.ADMIN, Role.PROJECT_MANAGER}


class TaskPolicy:
    """Capability checks for task operations.

    Employees may only touch tasks they are assigned to, and then only the
    `status` and `comments` fields; admins and project managers may do anything
    except what is restricted to assignees (time tracking, completing).
    """

    EMPLOYEE_EDITABLE_FIELDS = frozenset({"status", "status_reason", "comments"})

    def can_view(self, actor: Actor, task: Task) -> bool:
        if actor.is_manager:
            return True
        return task.is_assigned(actor.user_id) or task.assigned_by == actor.user_id

    def can_edit(self, actor: Actor, task: Task) -> bool:
        return actor.is_manager or task.is_assigned(actor.user_id)

    def can_mutate_restricted_fields(self, actor: Actor, task: Task) -> bool:
        return actor.is_manager

    def can_delete(self, actor: Actor, task: Task) -> bool:
        if actor.is_manager:
            return True
        return actor.role == Role.EMPLOYEE and actor.designation == PROJECT_MANAGER_DESIGNATION

    def can_manage_assignees(self, actor: Actor, task: Task) -> bool:
        return actor.is_manager or task.assigned_by == actor.user_id

    def can_see_all_tasks(self, actor: Actor) -> bool:
        return actor.is_manager
