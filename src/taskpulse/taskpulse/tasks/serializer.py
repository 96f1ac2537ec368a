"""Task <-> JSON document mapping.

The document is what the MySQL repository stores in `tasks.document` and what
the controllers return. Instants are ISO-8601 (UTC), durations are integer
milliseconds.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..common.datetime_utils import ms_to_hours, parse_iso_datetime, to_iso
from ..core.constants import DEFAULT_CATEGORY
from ..core.enums import AssigneeRole, Phase, Severity, TaskStatus
from .model import (
    Assignee,
    Blocker,
    Comment,
    CustomFields,
    LedgerEntry,
    Milestone,
    Progress,
    StatusChange,
    Task,
    TrackingSession,
)


def _ledger_to_dict(e: LedgerEntry) -> Dict[str, Any]:
    return {
        "userId": e.user_id,
        "totalTimeSpent": int(e.total_time_spent),
        "sessions": [
            {
                "startTime": to_iso(s.start_time),
                "endTime": to_iso(s.end_time),
                "duration": int(s.duration),
                "notes": s.notes,
            }
            for s in e.sessions
        ],
        "isActive": e.is_active,
        "currentSessionStart": to_iso(e.current_session_start),
        "lastActivity": to_iso(e.last_activity),
    }


def task_to_document(task: Task) -> Dict[str, Any]:
    p = task.progress
    return {
        "title": task.title,
        "description": task.description,
        "assignedTo": [
            {"userId": a.user_id, "role": a.role.value, "assignedAt": to_iso(a.assigned_at)} for a in task.assignees
        ],
        "assignedBy": task.assigned_by,
        "status": task.status.value,
        "progress": {
            "currentPhase": p.current_phase.value,
            "percentage": p.percentage,
            "blockers": [
                {
                    "id": b.blocker_id,
                    "description": b.description,
                    "severity": b.severity.value,
                    "reportedBy": b.reported_by,
                    "reportedAt": to_iso(b.reported_at),
                    "resolved": b.resolved,
                    "resolvedAt": to_iso(b.resolved_at),
                }
                for b in p.blockers
            ],
            "milestones": [
                {
                    "id": m.milestone_id,
                    "title": m.title,
                    "description": m.description,
                    "dueDate": to_iso(m.due_date),
                    "completed": m.completed,
                    "completedAt": to_iso(m.completed_at),
                    "assignedTo": m.assigned_to,
                }
                for m in p.milestones
            ],
        },
        "dueDate": to_iso(task.due_date),
        "startDate": to_iso(task.start_date),
        "completedDate": to_iso(task.completed_date),
        "estimatedHours": task.estimated_hours,
        "timeTracking": [_ledger_to_dict(e) for e in task.time_tracking],
        "statusHistory": [
            {
                "status": h.status.value,
                "changedBy": h.changed_by,
                "changedAt": to_iso(h.changed_at),
                "reason": h.reason,
            }
            for h in task.status_history
        ],
        "category": task.category,
        "tags": list(task.tags),
        "comments": [
            {"userId": c.user_id, "message": c.message, "timestamp": to_iso(c.timestamp)} for c in task.comments
        ],
        "watchers": list(task.watchers),
        "customFields": task.custom_fields.to_dict(),
        "createdAt": to_iso(task.created_at),
        "updatedAt": to_iso(task.updated_at),
    }


def task_from_document(task_id: Optional[int], doc: Dict[str, Any], *, version: int = 0) -> Task:
    progress = doc.get("progress") or {}
    return Task(
        task_id=task_id,
        title=doc["title"],
        description=doc.get("description", ""),
        assigned_by=int(doc["assignedBy"]),
        due_date=_required_dt(doc["dueDate"]),
        assignees=[
            Assignee(
                user_id=int(a["userId"]),
                role=AssigneeRole(a.get("role", AssigneeRole.PRIMARY.value)),
                assigned_at=_required_dt(a["assignedAt"]),
            )
            for a in doc.get("assignedTo", [])
        ],
        status=TaskStatus(doc.get("status", TaskStatus.PENDING.value)),
        progress=Progress(
            current_phase=Phase(progress.get("currentPhase", Phase.PLANNING.value)),
            percentage=progress.get("percentage", 0),
            blockers=[
                Blocker(
                    blocker_id=str(b["id"]),
                    description=b["description"],
                    severity=Severity(b.get("severity", Severity.MEDIUM.value)),
                    reported_by=int(b["reportedBy"]),
                    reported_at=_required_dt(b["reportedAt"]),
                    resolved=bool(b.get("resolved", False)),
                    resolved_at=parse_iso_datetime(b.get("resolvedAt")),
                )
                for b in progress.get("blockers", [])
            ],
            milestones=[
                Milestone(
                    milestone_id=str(m["id"]),
                    title=m["title"],
                    description=m.get("description") or "",
                    due_date=parse_iso_datetime(m.get("dueDate")),
                    completed=bool(m.get("completed", False)),
                    completed_at=parse_iso_datetime(m.get("completedAt")),
                    assigned_to=m.get("assignedTo"),
                )
                for m in progress.get("milestones", [])
            ],
        ),
        start_date=parse_iso_datetime(doc.get("startDate")),
        completed_date=parse_iso_datetime(doc.get("completedDate")),
        estimated_hours=doc.get("estimatedHours"),
        time_tracking=[
            LedgerEntry(
                user_id=int(e["userId"]),
                total_time_spent=int(e.get("totalTimeSpent", 0)),
                sessions=[
                    TrackingSession(
                        start_time=_required_dt(s["startTime"]),
                        end_time=_required_dt(s["endTime"]),
                        duration=int(s.get("duration", 0)),
                        notes=s.get("notes") or "",
                    )
                    for s in e.get("sessions", [])
                ],
                is_active=bool(e.get("isActive", False)),
                current_session_start=parse_iso_datetime(e.get("currentSessionStart")),
                last_activity=parse_iso_datetime(e.get("lastActivity")),
            )
            for e in doc.get("timeTracking", [])
        ],
        status_history=[
            StatusChange(
                status=TaskStatus(h["status"]),
                changed_by=h.get("changedBy"),
                changed_at=_required_dt(h["changedAt"]),
                reason=h.get("reason") or "",
            )
            for h in doc.get("statusHistory", [])
        ],
        category=doc.get("category") or DEFAULT_CATEGORY,
        tags=list(doc.get("tags", [])),
        comments=[
            Comment(user_id=int(c["userId"]), message=c["message"], timestamp=_required_dt(c["timestamp"]))
            for c in doc.get("comments", [])
        ],
        watchers=[int(w) for w in doc.get("watchers", [])],
        custom_fields=CustomFields(doc.get("customFields") or {}),
        created_at=parse_iso_datetime(doc.get("createdAt")),
        updated_at=parse_iso_datetime(doc.get("updatedAt")),
        version=int(version),
    )


def task_to_response(task: Task, now: datetime) -> Dict[str, Any]:
    """API shape: the stored document plus id, version and derived fields."""
    body = task_to_document(task)
    primary = task.primary_assignee
    body.update(
        {
            "id": task.task_id,
            "version": task.version,
            "isOverdue": task.is_overdue(now),
            "isBeingTracked": task.is_being_tracked,
            "primaryAssignee": primary.user_id if primary else None,
            "totalHoursSpent": task.total_hours_spent,
            "daysUntilDue": task.days_until_due(now),
            "activeTimeTrackers": [e.user_id for e in task.active_trackers],
        }
    )
    for entry in body["timeTracking"]:
        entry["totalHours"] = ms_to_hours(entry["totalTimeSpent"])
    return body


def _required_dt(value: Any) -> datetime:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise ValueError("Missing required timestamp")
    return parsed
