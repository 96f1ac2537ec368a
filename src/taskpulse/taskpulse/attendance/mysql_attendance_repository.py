from __future__ import annotations

from datetime import date
from typing import Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import AttendanceRecord
from .repository import AttendanceSource


def _status(value) -> AttendanceStatus:
    try:
        return AttendanceStatus(str(value).upper())
    except ValueError:
        return AttendanceStatus.UNKNOWN


class MySQLAttendanceRepository(AttendanceSource):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_user(self, user_id: int, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, work_date, check_in_time, check_out_time, status
                FROM attendance_records
                WHERE user_id=%s AND work_date BETWEEN %s AND %s
                ORDER BY work_date ASC
                """,
                (int(user_id), start_date, end_date),
            )
            rows = fetchall(cur)
            return [
                AttendanceRecord(
                    user_id=int(r["user_id"]),
                    work_date=r["work_date"],
                    check_in_time=r.get("check_in_time"),
                    check_out_time=r.get("check_out_time"),
                    status=_status(r["status"]),
                )
                for r in rows
            ]
