from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AlreadyActiveError,
    AlreadyAssignedError,
    ConcurrentModificationError,
    DomainError,
    DuplicateRecordError,
    LastAssigneeError,
    NoActiveSessionError,
    NotAssignedError,
    PermissionDenied,
    RecordNotFound,
    ValidationError,
)
from ..tasks.policy import Actor
from .datetime_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationError, 400),
    (PermissionDenied, 403),
    (NotAssignedError, 403),
    (RecordNotFound, 404),
    (AlreadyActiveError, 409),
    (NoActiveSessionError, 409),
    (AlreadyAssignedError, 409),
    (LastAssigneeError, 409),
    (DuplicateRecordError, 409),
    (ConcurrentModificationError, 409),
)


def status_for(error: DomainError) -> int:
    for error_cls, status in STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return status
    return 400


def ok(data: Any = None, *, message: str = "OK", status: int = 200):
    return jsonify({"success": True, "message": message, "data": data}), status


def fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def current_actor() -> Optional[Actor]:
    if "user_id" not in session:
        return None
    try:
        role = Role(session.get("role"))
    except ValueError:
        return None
    return Actor(user_id=int(session["user_id"]), role=role, designation=session.get("designation"))


def api_view(view):
    """Require a session and translate domain errors into JSON responses.

    The wrapped view receives the caller as its first argument.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        actor = current_actor()
        if actor is None:
            return fail("Authentication required", 401)
        try:
            return view(actor, *args, **kwargs)
        except DomainError as e:
            return fail(str(e), status_for(e))
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.path)
            return fail("Internal server error", 500)

    return wrapper


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def query_datetime(name: str) -> Optional[datetime]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")
