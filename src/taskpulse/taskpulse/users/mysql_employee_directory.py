from __future__ import annotations

from typing import Iterable, Mapping, Optional

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Employee
from .repository import EmployeeDirectory

_COLUMNS = "user_id, full_name, email, role, designation, is_active"


class MySQLEmployeeDirectory(EmployeeDirectory):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return self._to_employee(row) if row else None

    def get_many(self, user_ids: Iterable[int]) -> Mapping[int, Employee]:
        ids = sorted({int(u) for u in user_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({in_clause(ids)})", tuple(ids))
            return {int(r["user_id"]): self._to_employee(r) for r in fetchall(cur)}

    @staticmethod
    def _to_employee(row: dict) -> Employee:
        return Employee(
            user_id=int(row["user_id"]),
            full_name=row["full_name"],
            role=Role(row["role"]),
            designation=row.get("designation"),
            email=row.get("email"),
            is_active=bool(row.get("is_active", True)),
        )
