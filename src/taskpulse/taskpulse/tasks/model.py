from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Union

from ..common.datetime_utils import ensure_aware, ms_to_hours
from ..core.constants import DEFAULT_CATEGORY
from ..core.enums import AssigneeRole, Phase, Severity, TaskStatus
from ..core.exceptions import ValidationError

Scalar = Union[str, int, float, bool]


@dataclass
class Assignee:
    user_id: int
    role: AssigneeRole
    assigned_at: datetime


@dataclass
class TrackingSession:
    start_time: datetime
    end_time: datetime
    duration: int  # milliseconds
    notes: str = ""


@dataclass
class LedgerEntry:
    """Time tracking state of one assignee on one task."""

    user_id: int
    total_time_spent: int = 0  # milliseconds, closed sessions only
    sessions: List[TrackingSession] = field(default_factory=list)
    is_active: bool = False
    current_session_start: Optional[datetime] = None
    last_activity: Optional[datetime] = None

    @property
    def total_hours(self) -> float:
        return ms_to_hours(self.total_time_spent)


@dataclass
class Blocker:
    blocker_id: str
    description: str
    severity: Severity
    reported_by: int
    reported_at: datetime
    resolved: bool = False
    resolved_at: Optional[datetime] = None


@dataclass
class Milestone:
    milestone_id: str
    title: str
    description: str = ""
    due_date: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    assigned_to: Optional[int] = None


@dataclass
class Progress:
    current_phase: Phase = Phase.PLANNING
    percentage: float = 0
    blockers: List[Blocker] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)

    @property
    def open_blockers(self) -> List[Blocker]:
        return [b for b in self.blockers if not b.resolved]


@dataclass
class StatusChange:
    status: TaskStatus
    changed_by: Optional[int]
    changed_at: datetime
    reason: str = ""


@dataclass
class Comment:
    user_id: int
    message: str
    timestamp: datetime


class CustomFields:
    """Open key/value bag restricted to scalar values (str, int, float, bool)."""

    def __init__(self, values: Optional[Dict[str, Scalar]] = None):
        self._values: Dict[str, Scalar] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def set(self, key: str, value: Scalar) -> None:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Custom field name is required")
        if not isinstance(value, (str, int, float, bool)):
            raise ValidationError(f"Custom field '{key}' must be a string, number or boolean")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"Custom field '{key}' must be a finite number")
        self._values[key.strip()] = value

    def get(self, key: str, default: Optional[Scalar] = None) -> Optional[Scalar]:
        return self._values.get(key, default)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def to_dict(self) -> Dict[str, Scalar]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CustomFields):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"CustomFields({self._values!r})"


@dataclass
class Task:
    """Domain entity: a task with its embedded roster, ledger and progress.

    The task exclusively owns every sub-document; nothing outside it holds
    references into `assignees`, `time_tracking` or `progress`.
    """

    task_id: Optional[int]
    title: str
    description: str
    assigned_by: int
    due_date: datetime
    assignees: List[Assignee] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    progress: Progress = field(default_factory=Progress)
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    time_tracking: List[LedgerEntry] = field(default_factory=list)
    status_history: List[StatusChange] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY
    tags: List[str] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    watchers: List[int] = field(default_factory=list)
    custom_fields: CustomFields = field(default_factory=CustomFields)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    # Lookups
    def find_assignee(self, user_id: int) -> Optional[Assignee]:
        for a in self.assignees:
            if a.user_id == user_id:
                return a
        return None

    def is_assigned(self, user_id: int) -> bool:
        return self.find_assignee(user_id) is not None

    def ledger_for(self, user_id: int) -> Optional[LedgerEntry]:
        for entry in self.time_tracking:
            if entry.user_id == user_id:
                return entry
        return None

    # Derived fields
    @property
    def assignee_ids(self) -> List[int]:
        return [a.user_id for a in self.assignees]

    @property
    def primary_assignee(self) -> Optional[Assignee]:
        for a in self.assignees:
            if a.role == AssigneeRole.PRIMARY:
                return a
        return self.assignees[0] if self.assignees else None

    @property
    def is_being_tracked(self) -> bool:
        return any(e.is_active for e in self.time_tracking)

    @property
    def active_trackers(self) -> List[LedgerEntry]:
        return [e for e in self.time_tracking if e.is_active]

    @property
    def total_time_spent(self) -> int:
        return sum(e.total_time_spent for e in self.time_tracking)

    @property
    def total_hours_spent(self) -> float:
        return ms_to_hours(self.total_time_spent)

    def is_overdue(self, now: datetime) -> bool:
        if self.status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED):
            return False
        return ensure_aware(now) > ensure_aware(self.due_date)

    def days_until_due(self, now: datetime) -> int:
        delta = ensure_aware(self.due_date) - ensure_aware(now)
        return math.ceil(delta.total_seconds() / 86400)
