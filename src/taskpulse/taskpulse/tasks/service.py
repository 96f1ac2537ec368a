from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..common.datetime_utils import ensure_aware, ms_to_hours, now_utc, parse_iso_datetime, round_half_up
from ..common.pagination import Page, clamp_pagination, paginate
from ..common.validators import require_enum, require_max_length, require_non_empty, require_non_negative
from ..core.constants import (
    COMMENT_MAX_LENGTH,
    DEFAULT_CATEGORY,
    DEFAULT_PAGE_SIZE,
    TASK_DESCRIPTION_MAX_LENGTH,
    TASK_TITLE_MAX_LENGTH,
)
from ..core.enums import AssigneeRole, NotificationType, Phase, Severity, TaskStatus
from ..core.exceptions import PermissionDenied, RecordNotFound, ValidationError
from ..notifications.model import NotificationEvent
from ..notifications.sink import LoggingNotificationSink, NotificationSink, dispatch
from ..users.repository import EmployeeDirectory
from .ledger import TimeTrackingLedger
from .lifecycle import TaskLifecycle, apply_invariants
from .model import Assignee, Comment, CustomFields, Task
from .policy import Actor, TaskPolicy
from .progress import ProgressTracker
from .repository import TaskFilter, TaskRepository
from .roster import AssigneeRoster

logger = logging.getLogger(__name__)

MANAGER_EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "due_date",
        "estimated_hours",
        "category",
        "tags",
        "custom_fields",
        "status",
        "status_reason",
        "comments",
    }
)


@dataclass(frozen=True)
class NewTask:
    title: str
    description: str
    assignee_ids: Sequence[int]
    due_date: datetime
    estimated_hours: Optional[float] = None
    category: Optional[str] = None
    tags: Sequence[str] = ()
    custom_fields: Mapping[str, Any] = field(default_factory=dict)


def _clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    out: List[str] = []
    for tag in tags or ():
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings")
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in out:
            out.append(cleaned)
    return out


def _coerce_due_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError("Due date is required (ISO-8601)")
    return parsed


class TaskService:
    """Task use cases: load, apply invariants, mutate, save, notify."""

    def __init__(
        self,
        tasks: TaskRepository,
        employees: EmployeeDirectory,
        *,
        notifier: NotificationSink | None = None,
        policy: TaskPolicy | None = None,
        ledger: TimeTrackingLedger | None = None,
    ):
        self._tasks = tasks
        self._employees = employees
        self._notifier = notifier or LoggingNotificationSink()
        self._policy = policy or TaskPolicy()
        ledger = ledger or TimeTrackingLedger()
        self._ledger = ledger
        self._lifecycle = TaskLifecycle(ledger)
        self._roster = AssigneeRoster(ledger)
        self._progress = ProgressTracker()

    # -------- Loading / saving --------
    def _load(self, task_id: int, now: datetime) -> Task:
        task = self._tasks.get_by_id(int(task_id))
        if task is None:
            raise RecordNotFound("Task not found")
        if apply_invariants(task, now):
            task = self._tasks.save(task)
        return task

    def _commit(self, task: Task, now: datetime) -> Task:
        apply_invariants(task, now)
        return self._tasks.save(task)

    def _notify(self, task: Task, recipients: Iterable[int], *, kind: NotificationType, title: str, message: str, sender_id: Optional[int], now: datetime) -> None:
        seen: set[int] = set()
        events = []
        for recipient in recipients:
            if recipient in seen or recipient == sender_id:
                continue
            seen.add(recipient)
            events.append(
                NotificationEvent(
                    recipient_id=recipient,
                    type=kind,
                    title=title,
                    message=message,
                    sender_id=sender_id,
                    task_id=task.task_id,
                    created_at=now,
                )
            )
        dispatch(self._notifier, events)

    def _require_active_employees(self, user_ids: Iterable[int]) -> None:
        ids = [int(u) for u in user_ids]
        found = self._employees.get_many(ids)
        missing = [u for u in ids if u not in found or not found[u].is_active]
        if missing:
            raise ValidationError(f"Unknown or inactive employee(s): {', '.join(str(m) for m in missing)}")

    def _require_contributor(self, actor: Actor, task: Task) -> None:
        if not self._policy.can_edit(actor, task):
            raise PermissionDenied("You can only update tasks assigned to you")

    # -------- CRUD --------
    def create_task(self, actor: Actor, new: NewTask, *, now: datetime | None = None) -> Task:
        now = now or now_utc()

        title = require_max_length(require_non_empty(new.title, "Task title"), "Task title", TASK_TITLE_MAX_LENGTH)
        description = require_max_length(
            require_non_empty(new.description, "Task description"), "Task description", TASK_DESCRIPTION_MAX_LENGTH
        )
        assignee_ids = [int(u) for u in new.assignee_ids or ()]
        if not assignee_ids:
            raise ValidationError("At least one assignee is required")
        if len(set(assignee_ids)) != len(assignee_ids):
            raise ValidationError("Assignees must be unique")
        self._require_active_employees(assignee_ids)

        due_date = _coerce_due_date(new.due_date)
        if due_date <= now:
            raise ValidationError("Due date must be in the future")

        estimated = None
        if new.estimated_hours is not None:
            estimated = require_non_negative(new.estimated_hours, "Estimated hours")

        task = Task(
            task_id=None,
            title=title,
            description=description,
            assigned_by=actor.user_id,
            due_date=due_date,
            assignees=[
                Assignee(
                    user_id=user_id,
                    role=AssigneeRole.PRIMARY if i == 0 else AssigneeRole.COLLABORATOR,
                    assigned_at=now,
                )
                for i, user_id in enumerate(assignee_ids)
            ],
            estimated_hours=estimated,
            category=(new.category or "").strip() or DEFAULT_CATEGORY,
            tags=_clean_tags(new.tags),
            custom_fields=CustomFields(dict(new.custom_fields or {})),
            created_at=now,
            updated_at=now,
        )
        task = self._commit(task, now)
        logger.info("Task %s created by %s for %s", task.task_id, actor.user_id, assignee_ids)

        self._notify(
            task,
            assignee_ids,
            kind=NotificationType.TASK_ASSIGNED,
            title="New Task Assigned",
            message=f'You have been assigned a new task: "{task.title}"',
            sender_id=actor.user_id,
            now=now,
        )
        return task

    def get_task(self, actor: Actor, task_id: int, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        if not self._policy.can_view(actor, task):
            raise PermissionDenied("You can only view tasks assigned to you or created by you")
        return task

    def list_tasks(
        self,
        actor: Actor,
        filters: TaskFilter | None = None,
        *,
        status: TaskStatus | str | None = None,
        page: Any = 1,
        limit: Any = DEFAULT_PAGE_SIZE,
        now: datetime | None = None,
    ) -> Page[Task]:
        """Visible tasks, newest first, one page at a time.

        Status is matched after invariants run, so a task that just went
        overdue is listed as overdue.
        """
        now = now or now_utc()
        page, limit = clamp_pagination(page, limit)
        return paginate(self._visible_tasks(actor, filters, status, now), page, limit)

    def _visible_tasks(
        self, actor: Actor, filters: TaskFilter | None, status: TaskStatus | str | None, now: datetime
    ) -> List[Task]:
        wanted = require_enum(TaskStatus, status, "Status") if status else None
        if filters is not None and filters.created_from and filters.created_to:
            if filters.created_from > filters.created_to:
                raise ValidationError("Start date must be before end date")

        if self._policy.can_see_all_tasks(actor):
            tasks = self._tasks.list_all(filters)
        else:
            tasks = self._tasks.list_visible_to(actor.user_id, filters)

        out: List[Task] = []
        for task in tasks:
            if apply_invariants(task, now):
                task = self._tasks.save(task)
            if wanted is None or task.status == wanted:
                out.append(task)
        return out

    def update_task(self, actor: Actor, task_id: int, changes: Mapping[str, Any], *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        unknown = set(changes) - MANAGER_EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        task = self._load(task_id, now)
        if not self._policy.can_edit(actor, task):
            raise PermissionDenied("You can only update tasks assigned to you")
        if not self._policy.can_mutate_restricted_fields(actor, task):
            restricted = set(changes) - TaskPolicy.EMPLOYEE_EDITABLE_FIELDS
            if restricted:
                raise PermissionDenied("Employees can only update task status and comments")

        if "title" in changes:
            task.title = require_max_length(
                require_non_empty(changes["title"], "Task title"), "Task title", TASK_TITLE_MAX_LENGTH
            )
        if "description" in changes:
            task.description = require_max_length(
                require_non_empty(changes["description"], "Task description"),
                "Task description",
                TASK_DESCRIPTION_MAX_LENGTH,
            )
        if "due_date" in changes:
            task.due_date = _coerce_due_date(changes["due_date"])
        if "estimated_hours" in changes:
            value = changes["estimated_hours"]
            task.estimated_hours = None if value is None else require_non_negative(value, "Estimated hours")
        if "category" in changes:
            task.category = (changes["category"] or "").strip() or DEFAULT_CATEGORY
        if "tags" in changes:
            task.tags = _clean_tags(changes["tags"])
        if "custom_fields" in changes:
            values = changes["custom_fields"] or {}
            if not isinstance(values, Mapping):
                raise ValidationError("Custom fields must be an object")
            task.custom_fields = CustomFields(dict(values))
        if changes.get("comments"):
            task.comments.append(self._new_comment(actor, changes["comments"], now))
        if "status" in changes:
            new_status = require_enum(TaskStatus, changes["status"], "Status")
            if new_status == TaskStatus.OVERDUE:
                raise ValidationError("Overdue is set automatically once the due date has passed")
            self._lifecycle.change_status(
                task,
                new_status,
                changed_by=actor.user_id,
                reason=changes.get("status_reason"),
                now=now,
            )

        task = self._commit(task, now)
        self._notify(
            task,
            [task.assigned_by, *task.assignee_ids],
            kind=NotificationType.TASK_UPDATED,
            title="Task Updated",
            message=f'Task "{task.title}" has been updated',
            sender_id=actor.user_id,
            now=now,
        )
        return task

    def delete_task(self, actor: Actor, task_id: int) -> None:
        task = self._tasks.get_by_id(int(task_id))
        if task is None:
            raise RecordNotFound("Task not found")
        if not self._policy.can_delete(actor, task):
            raise PermissionDenied("Only admins and project managers can delete tasks")
        self._tasks.delete(int(task_id))
        logger.info("Task %s deleted by %s", task_id, actor.user_id)

    # -------- Time tracking --------
    def start_tracking(self, actor: Actor, task_id: int, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._lifecycle.start_tracking(task, actor.user_id, now=now)
        task = self._commit(task, now)

        self._notify(
            task,
            [task.assigned_by],
            kind=NotificationType.TASK_STARTED,
            title="Task Started",
            message=f'Work has started on "{task.title}"',
            sender_id=actor.user_id,
            now=now,
        )
        return task

    def stop_tracking(self, actor: Actor, task_id: int, notes: str = "", *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        session = self._ledger.stop(task, actor.user_id, notes, now=now)
        logger.debug("Task %s: user %s tracked %d ms", task.task_id, actor.user_id, session.duration)
        return self._commit(task, now)

    def complete_task(self, actor: Actor, task_id: int, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._lifecycle.complete(task, actor.user_id, now=now)
        task = self._commit(task, now)

        self._notify(
            task,
            [task.assigned_by],
            kind=NotificationType.TASK_COMPLETED,
            title="Task Completed",
            message=f'Task "{task.title}" has been completed',
            sender_id=actor.user_id,
            now=now,
        )
        return task

    # -------- Roster --------
    def add_assignee(
        self,
        actor: Actor,
        task_id: int,
        user_id: int,
        role: AssigneeRole | str = AssigneeRole.COLLABORATOR,
        *,
        now: datetime | None = None,
    ) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        if not self._policy.can_manage_assignees(actor, task):
            raise PermissionDenied("Only admins, project managers or the task creator can manage assignees")
        self._require_active_employees([user_id])

        self._roster.add(task, int(user_id), role, now=now)
        task = self._commit(task, now)

        self._notify(
            task,
            [int(user_id)],
            kind=NotificationType.TASK_ASSIGNED,
            title="Added to Task",
            message=f'You have been added to task: "{task.title}"',
            sender_id=actor.user_id,
            now=now,
        )
        return task

    def remove_assignee(self, actor: Actor, task_id: int, user_id: int, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        if not self._policy.can_manage_assignees(actor, task):
            raise PermissionDenied("Only admins, project managers or the task creator can manage assignees")

        self._roster.remove(task, int(user_id), now=now)
        return self._commit(task, now)

    # -------- Progress --------
    def update_progress(
        self,
        actor: Actor,
        task_id: int,
        percentage: Any,
        phase: Phase | str | None = None,
        *,
        now: datetime | None = None,
    ) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        self._progress.update_progress(task, percentage, phase)
        return self._commit(task, now)

    def add_blocker(
        self,
        actor: Actor,
        task_id: int,
        description: str,
        severity: Severity | str = Severity.MEDIUM,
        *,
        now: datetime | None = None,
    ) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        self._progress.add_blocker(task, description, severity, reported_by=actor.user_id, now=now)
        return self._commit(task, now)

    def resolve_blocker(self, actor: Actor, task_id: int, blocker_id: str, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        if self._progress.resolve_blocker(task, blocker_id, now=now) is None:
            return task
        return self._commit(task, now)

    def add_milestone(
        self,
        actor: Actor,
        task_id: int,
        title: str,
        *,
        due_date: Any = None,
        description: str = "",
        assigned_to: Optional[int] = None,
        now: datetime | None = None,
    ) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        if assigned_to is not None and not task.is_assigned(int(assigned_to)):
            raise ValidationError("Milestones can only be assigned to task assignees")
        self._progress.add_milestone(
            task,
            title,
            due_date=_coerce_due_date(due_date) if due_date else None,
            description=description,
            assigned_to=int(assigned_to) if assigned_to is not None else None,
        )
        return self._commit(task, now)

    def complete_milestone(self, actor: Actor, task_id: int, milestone_id: str, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        if self._progress.complete_milestone(task, milestone_id, now=now) is None:
            return task
        return self._commit(task, now)

    # -------- Collaboration --------
    def _new_comment(self, actor: Actor, message: Any, now: datetime) -> Comment:
        text = require_non_empty(message if isinstance(message, str) else None, "Comment")
        require_max_length(text, "Comment", COMMENT_MAX_LENGTH)
        return Comment(user_id=actor.user_id, message=text, timestamp=now)

    def add_comment(self, actor: Actor, task_id: int, message: str, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        self._require_contributor(actor, task)
        task.comments.append(self._new_comment(actor, message, now))
        return self._commit(task, now)

    def add_watcher(self, actor: Actor, task_id: int, user_id: Optional[int] = None, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        watcher_id = actor.user_id if user_id is None else int(user_id)
        if not self._policy.can_view(actor, task):
            raise PermissionDenied("You can only watch tasks you can view")
        if watcher_id != actor.user_id and not actor.is_manager:
            raise PermissionDenied("You can only watch tasks yourself")
        self._require_active_employees([watcher_id])

        if watcher_id in task.watchers:
            return task
        task.watchers.append(watcher_id)
        return self._commit(task, now)

    def remove_watcher(self, actor: Actor, task_id: int, user_id: Optional[int] = None, *, now: datetime | None = None) -> Task:
        now = now or now_utc()
        task = self._load(task_id, now)
        watcher_id = actor.user_id if user_id is None else int(user_id)
        if watcher_id != actor.user_id and not actor.is_manager:
            raise PermissionDenied("You can only stop watching tasks yourself")

        if watcher_id not in task.watchers:
            return task
        task.watchers = [w for w in task.watchers if w != watcher_id]
        return self._commit(task, now)

    # -------- Statistics --------
    def task_stats(self, actor: Actor, *, now: datetime | None = None) -> Dict[str, Any]:
        now = now or now_utc()
        tasks = self._visible_tasks(actor, None, None, now)

        by_status = {s.value: 0 for s in TaskStatus}
        for task in tasks:
            by_status[task.status.value] += 1

        total = len(tasks)
        avg_progress = sum(float(t.progress.percentage) for t in tasks) / total if total else 0
        return {
            "totalTasks": total,
            "byStatus": by_status,
            "overdueTasks": sum(1 for t in tasks if t.is_overdue(now)),
            "activeTimers": sum(len(t.active_trackers) for t in tasks),
            "averageProgress": int(round_half_up(avg_progress)),
            "totalHours": ms_to_hours(sum(t.total_time_spent for t in tasks)),
            "openBlockers": sum(len(t.progress.open_blockers) for t in tasks),
        }

    def user_time_stats(self, actor: Actor, user_id: int, *, now: datetime | None = None) -> Dict[str, Any]:
        now = now or now_utc()
        if actor.user_id != int(user_id) and not actor.is_manager:
            raise PermissionDenied("You can only view your own time statistics")

        stats: Dict[str, Dict[str, float]] = {}
        total_ms = 0
        for task in self._tasks.list_visible_to(int(user_id)):
            apply_invariants(task, now)
            if not task.is_assigned(int(user_id)):
                continue
            entry = task.ledger_for(int(user_id))
            spent = entry.total_time_spent if entry else 0
            bucket = stats.setdefault(task.status.value, {"count": 0, "totalTime": 0})
            bucket["count"] += 1
            bucket["totalTime"] += spent
            total_ms += spent

        for bucket in stats.values():
            bucket["totalHours"] = ms_to_hours(bucket["totalTime"])
        return {"userId": int(user_id), "byStatus": stats, "totalHours": ms_to_hours(total_ms)}
