from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from ..common.validators import require_enum, require_number, require_non_empty
from ..core.enums import Phase, Severity
from .model import Blocker, Milestone, Task


class ProgressTracker:
    """Phase, percentage, blockers and milestones attached to a task."""

    def update_progress(self, task: Task, percentage: Any, phase: Optional[Phase | str] = None) -> None:
        value = require_number(percentage, "Progress percentage")
        new_phase = require_enum(Phase, phase, "Phase") if phase else None

        task.progress.percentage = max(0.0, min(100.0, value))
        if new_phase is not None:
            task.progress.current_phase = new_phase

    def add_blocker(
        self,
        task: Task,
        description: str,
        severity: Severity | str = Severity.MEDIUM,
        *,
        reported_by: int,
        now: datetime,
    ) -> Blocker:
        blocker = Blocker(
            blocker_id=uuid.uuid4().hex,
            description=require_non_empty(description, "Blocker description"),
            severity=require_enum(Severity, severity or Severity.MEDIUM, "Severity"),
            reported_by=reported_by,
            reported_at=now,
        )
        task.progress.blockers.append(blocker)
        return blocker

    def resolve_blocker(self, task: Task, blocker_id: str, *, now: datetime) -> Optional[Blocker]:
        # Unknown ids are a no-op; callers get None back.
        for blocker in task.progress.blockers:
            if blocker.blocker_id == blocker_id:
                blocker.resolved = True
                blocker.resolved_at = now
                return blocker
        return None

    def add_milestone(
        self,
        task: Task,
        title: str,
        *,
        due_date: Optional[datetime] = None,
        description: str = "",
        assigned_to: Optional[int] = None,
    ) -> Milestone:
        milestone = Milestone(
            milestone_id=uuid.uuid4().hex,
            title=require_non_empty(title, "Milestone title"),
            description=(description or "").strip(),
            due_date=due_date,
            assigned_to=assigned_to,
        )
        task.progress.milestones.append(milestone)
        return milestone

    def complete_milestone(self, task: Task, milestone_id: str, *, now: datetime) -> Optional[Milestone]:
        for milestone in task.progress.milestones:
            if milestone.milestone_id == milestone_id:
                milestone.completed = True
                milestone.completed_at = now
                return milestone
        return None
