from __future__ import annotations

from flask import Flask, request

from ..common.datetime_utils import now_utc
from ..common.web import api_view, json_body, ok, query_datetime
from ..container import Container
from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.exceptions import ValidationError
from .repository import TaskFilter
from .serializer import task_to_response
from .service import NewTask

# JSON body keys -> TaskService.update_task field names.
UPDATE_FIELDS = {
    "title": "title",
    "description": "description",
    "dueDate": "due_date",
    "estimatedHours": "estimated_hours",
    "category": "category",
    "tags": "tags",
    "customFields": "custom_fields",
    "status": "status",
    "statusReason": "status_reason",
    "comment": "comments",
}


def _int(value, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


def register(app: Flask, container: Container) -> None:
    service = container.task_service

    def _out(task, message: str = "OK", status: int = 200):
        return ok({"task": task_to_response(task, now_utc())}, message=message, status=status)

    @app.route("/api/tasks", methods=["POST"], endpoint="create_task")
    @api_view
    def create_task(actor):
        body = json_body()
        assignees = body.get("assignedTo") or []
        if not isinstance(assignees, list):
            raise ValidationError("assignedTo must be a list of user ids")
        task = service.create_task(
            actor,
            NewTask(
                title=body.get("title", ""),
                description=body.get("description", ""),
                assignee_ids=[_int(a, "assignedTo") for a in assignees],
                due_date=body.get("dueDate"),
                estimated_hours=body.get("estimatedHours"),
                category=body.get("category"),
                tags=body.get("tags") or [],
                custom_fields=body.get("customFields") or {},
            ),
        )
        return _out(task, "Task created successfully", 201)

    @app.route("/api/tasks", methods=["GET"], endpoint="list_tasks")
    @api_view
    def list_tasks(actor):
        now = now_utc()
        args = request.args
        filters = TaskFilter(
            assigned_to=_int(args["assignedTo"], "assignedTo") if args.get("assignedTo") else None,
            assigned_by=_int(args["assignedBy"], "assignedBy") if args.get("assignedBy") else None,
            search=(args.get("search") or "").strip() or None,
            created_from=query_datetime("startDate"),
            created_to=query_datetime("endDate"),
        )
        result = service.list_tasks(
            actor,
            filters,
            status=args.get("status") or None,
            page=args.get("page", 1),
            limit=args.get("limit", DEFAULT_PAGE_SIZE),
            now=now,
        )
        return ok(
            {"tasks": [task_to_response(t, now) for t in result.items], "pagination": result.meta()},
            message="Tasks retrieved successfully",
        )

    @app.route("/api/tasks/stats", methods=["GET"], endpoint="task_stats")
    @api_view
    def task_stats(actor):
        return ok({"stats": service.task_stats(actor)})

    @app.route("/api/tasks/time-stats/<int:user_id>", methods=["GET"], endpoint="user_time_stats")
    @api_view
    def user_time_stats(actor, user_id: int):
        return ok({"stats": service.user_time_stats(actor, user_id)})

    @app.route("/api/tasks/<int:task_id>", methods=["GET"], endpoint="get_task")
    @api_view
    def get_task(actor, task_id: int):
        return _out(service.get_task(actor, task_id))

    @app.route("/api/tasks/<int:task_id>", methods=["PUT"], endpoint="update_task")
    @api_view
    def update_task(actor, task_id: int):
        body = json_body()
        changes = {UPDATE_FIELDS.get(k, k): v for k, v in body.items()}
        return _out(service.update_task(actor, task_id, changes), "Task updated successfully")

    @app.route("/api/tasks/<int:task_id>", methods=["DELETE"], endpoint="delete_task")
    @api_view
    def delete_task(actor, task_id: int):
        service.delete_task(actor, task_id)
        return ok(None, message="Task deleted successfully")

    @app.route("/api/tasks/<int:task_id>/start", methods=["POST"], endpoint="start_tracking")
    @api_view
    def start_tracking(actor, task_id: int):
        return _out(service.start_tracking(actor, task_id), "Time tracking started")

    @app.route("/api/tasks/<int:task_id>/stop", methods=["POST"], endpoint="stop_tracking")
    @api_view
    def stop_tracking(actor, task_id: int):
        body = json_body()
        task = service.stop_tracking(actor, task_id, body.get("notes") or "")
        last = task.ledger_for(actor.user_id).sessions[-1]
        return ok(
            {"task": task_to_response(task, now_utc()), "sessionDuration": last.duration},
            message="Time tracking stopped",
        )

    @app.route("/api/tasks/<int:task_id>/complete", methods=["POST"], endpoint="complete_task")
    @api_view
    def complete_task(actor, task_id: int):
        return _out(service.complete_task(actor, task_id), "Task completed successfully")

    @app.route("/api/tasks/<int:task_id>/assignees", methods=["POST"], endpoint="add_assignee")
    @api_view
    def add_assignee(actor, task_id: int):
        body = json_body()
        task = service.add_assignee(
            actor, task_id, _int(body.get("userId"), "userId"), body.get("role") or "collaborator"
        )
        return _out(task, "Assignee added successfully")

    @app.route("/api/tasks/<int:task_id>/assignees/<int:user_id>", methods=["DELETE"], endpoint="remove_assignee")
    @api_view
    def remove_assignee(actor, task_id: int, user_id: int):
        return _out(service.remove_assignee(actor, task_id, user_id), "Assignee removed successfully")

    @app.route("/api/tasks/<int:task_id>/progress", methods=["PUT"], endpoint="update_progress")
    @api_view
    def update_progress(actor, task_id: int):
        body = json_body()
        task = service.update_progress(actor, task_id, body.get("percentage"), body.get("phase"))
        return _out(task, "Progress updated successfully")

    @app.route("/api/tasks/<int:task_id>/blockers", methods=["POST"], endpoint="add_blocker")
    @api_view
    def add_blocker(actor, task_id: int):
        body = json_body()
        task = service.add_blocker(actor, task_id, body.get("description", ""), body.get("severity") or "medium")
        return _out(task, "Blocker added successfully", 201)

    @app.route(
        "/api/tasks/<int:task_id>/blockers/<blocker_id>/resolve", methods=["PUT"], endpoint="resolve_blocker"
    )
    @api_view
    def resolve_blocker(actor, task_id: int, blocker_id: str):
        return _out(service.resolve_blocker(actor, task_id, blocker_id), "Blocker resolved successfully")

    @app.route("/api/tasks/<int:task_id>/milestones", methods=["POST"], endpoint="add_milestone")
    @api_view
    def add_milestone(actor, task_id: int):
        body = json_body()
        assigned_to = body.get("assignedTo")
        task = service.add_milestone(
            actor,
            task_id,
            body.get("title", ""),
            due_date=body.get("dueDate"),
            description=body.get("description") or "",
            assigned_to=_int(assigned_to, "assignedTo") if assigned_to is not None else None,
        )
        return _out(task, "Milestone added successfully", 201)

    @app.route(
        "/api/tasks/<int:task_id>/milestones/<milestone_id>/complete", methods=["PUT"], endpoint="complete_milestone"
    )
    @api_view
    def complete_milestone(actor, task_id: int, milestone_id: str):
        return _out(service.complete_milestone(actor, task_id, milestone_id), "Milestone completed successfully")

    @app.route("/api/tasks/<int:task_id>/comments", methods=["POST"], endpoint="add_comment")
    @api_view
    def add_comment(actor, task_id: int):
        body = json_body()
        return _out(service.add_comment(actor, task_id, body.get("message")), "Comment added successfully", 201)

    @app.route("/api/tasks/<int:task_id>/watchers", methods=["POST"], endpoint="add_watcher")
    @api_view
    def add_watcher(actor, task_id: int):
        body = json_body()
        user_id = body.get("userId")
        task = service.add_watcher(actor, task_id, _int(user_id, "userId") if user_id is not None else None)
        return _out(task, "Watcher added successfully")

    @app.route("/api/tasks/<int:task_id>/watchers/<int:user_id>", methods=["DELETE"], endpoint="remove_watcher")
    @api_view
    def remove_watcher(actor, task_id: int, user_id: int):
        return _out(service.remove_watcher(actor, task_id, user_id), "Watcher removed successfully")
