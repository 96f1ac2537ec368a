from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..common.datetime_utils import now_utc
from ..core.enums import TaskStatus
from ..core.exceptions import ConcurrentModificationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    db_cursor,
    dump_json,
    fetchall,
    fetchone,
    from_db_datetime,
    in_clause,
    load_json,
    to_db_datetime,
)
from .model import Task
from .repository import TaskFilter, TaskRepository
from .serializer import task_from_document, task_to_document

logger = logging.getLogger(__name__)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_SELECT = "SELECT t.task_id, t.version, t.created_at, t.document FROM tasks t"


class MySQLTaskRepository(TaskRepository):
    """Tasks are stored as one JSON document per row.

    A few columns are lifted out of the document (status, creator, due date,
    created_at) for filtering; `task_assignees` indexes the roster.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, task_id: int) -> Optional[Task]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE t.task_id=%s", (int(task_id),))
            r = fetchone(cur)
            return self._to_task(r) if r else None

    def list_created_between(
        self,
        *,
        start: datetime,
        end: datetime,
        statuses: Optional[Sequence[TaskStatus]] = None,
        assignee_id: Optional[int] = None,
    ) -> Sequence[Task]:
        clauses = ["t.created_at BETWEEN %s AND %s"]
        params: list[object] = [to_db_datetime(start), to_db_datetime(end)]

        if statuses:
            clauses.append(f"t.status IN ({in_clause(list(statuses))})")
            params.extend(s.value for s in statuses)
        if assignee_id is not None:
            clauses.append("EXISTS (SELECT 1 FROM task_assignees a WHERE a.task_id=t.task_id AND a.user_id=%s)")
            params.append(int(assignee_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE {where} ORDER BY t.created_at ASC, t.task_id ASC", tuple(params))
            return self._to_tasks(fetchall(cur))

    def list_visible_to(self, user_id: int, filters: Optional[TaskFilter] = None) -> Sequence[Task]:
        clauses = ["(t.assigned_by=%s OR EXISTS (SELECT 1 FROM task_assignees a WHERE a.task_id=t.task_id AND a.user_id=%s))"]
        params: list[object] = [int(user_id), int(user_id)]
        return self._list(clauses, params, filters)

    def list_all(self, filters: Optional[TaskFilter] = None) -> Sequence[Task]:
        return self._list([], [], filters)

    def _list(self, clauses: list[str], params: list[object], filters: Optional[TaskFilter]) -> Sequence[Task]:
        if filters is not None:
            if filters.assigned_to is not None:
                clauses.append("EXISTS (SELECT 1 FROM task_assignees f WHERE f.task_id=t.task_id AND f.user_id=%s)")
                params.append(int(filters.assigned_to))
            if filters.assigned_by is not None:
                clauses.append("t.assigned_by=%s")
                params.append(int(filters.assigned_by))
            if filters.created_from is not None:
                clauses.append("t.created_at >= %s")
                params.append(to_db_datetime(filters.created_from))
            if filters.created_to is not None:
                clauses.append("t.created_at <= %s")
                params.append(to_db_datetime(filters.created_to))
            if filters.search:
                clauses.append(
                    "(LOWER(t.title) LIKE %s OR LOWER(JSON_UNQUOTE(JSON_EXTRACT(t.document, '$.description'))) LIKE %s)"
                )
                pattern = f"%{_escape_like(filters.search.lower())}%"
                params.extend([pattern, pattern])

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT}{where} ORDER BY t.created_at DESC, t.task_id DESC", tuple(params))
            return self._to_tasks(fetchall(cur))

    def save(self, task: Task) -> Task:
        now = now_utc()
        if task.created_at is None:
            task.created_at = now
        task.updated_at = now
        document = dump_json(task_to_document(task))

        with db_cursor(self._conn_factory) as (_, cur):
            if task.task_id is None:
                cur.execute(
                    """
                    INSERT INTO tasks(title, status, assigned_by, due_date, created_at, updated_at, version, document)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        task.title,
                        task.status.value,
                        int(task.assigned_by),
                        to_db_datetime(task.due_date),
                        to_db_datetime(task.created_at),
                        to_db_datetime(task.updated_at),
                        0,
                        document,
                    ),
                )
                task.task_id = int(cur.lastrowid)
                task.version = 0
            else:
                cur.execute(
                    """
                    UPDATE tasks
                    SET title=%s, status=%s, due_date=%s, updated_at=%s, version=version+1, document=%s
                    WHERE task_id=%s AND version=%s
                    """,
                    (
                        task.title,
                        task.status.value,
                        to_db_datetime(task.due_date),
                        to_db_datetime(task.updated_at),
                        document,
                        int(task.task_id),
                        int(task.version),
                    ),
                )
                if cur.rowcount == 0:
                    logger.warning("Stale write rejected for task %s at version %s", task.task_id, task.version)
                    raise ConcurrentModificationError()
                task.version += 1

            cur.execute("DELETE FROM task_assignees WHERE task_id=%s", (task.task_id,))
            for a in task.assignees:
                cur.execute(
                    "INSERT INTO task_assignees(task_id, user_id, role) VALUES(%s,%s,%s)",
                    (task.task_id, int(a.user_id), a.role.value),
                )
        return task

    def delete(self, task_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM task_assignees WHERE task_id=%s", (int(task_id),))
            cur.execute("DELETE FROM tasks WHERE task_id=%s", (int(task_id),))
            return cur.rowcount > 0

    @staticmethod
    def _to_task(r: dict) -> Task:
        task = task_from_document(int(r["task_id"]), load_json(r["document"]), version=int(r["version"]))
        if task.created_at is None:
            task.created_at = from_db_datetime(r.get("created_at"))
        return task

    def _to_tasks(self, rows: list) -> list[Task]:
        tasks = []
        for r in rows:
            # One corrupt document must not hide the rest of a listing.
            try:
                tasks.append(self._to_task(r))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable task %s: %r", r.get("task_id"), exc)
        return tasks
