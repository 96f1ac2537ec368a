from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.enums import PerformancePeriod
from ..core.exceptions import DuplicateRecordError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, from_db_datetime, to_db_datetime
from .model import COUNTER_FIELDS, Performance
from .repository import PerformanceRepository

_COLUMNS = ", ".join(
    (
        "performance_id",
        "employee_id",
        "period",
        "start_date",
        "end_date",
        *COUNTER_FIELDS,
        "overall_score",
        "grade",
        "reviewed_by",
        "review_date",
        "review_notes",
        "is_active",
        "created_at",
    )
)


class MySQLPerformanceRepository(PerformanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, performance_id: int) -> Optional[Performance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM performances WHERE performance_id=%s", (int(performance_id),))
            r = fetchone(cur)
            return self._to_record(r) if r else None

    def find_window(
        self,
        *,
        employee_id: int,
        period: PerformancePeriod,
        start_date: datetime,
        end_date: datetime,
    ) -> Optional[Performance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM performances
                WHERE employee_id=%s AND period=%s AND start_date=%s AND end_date=%s
                """,
                (int(employee_id), period.value, to_db_datetime(start_date), to_db_datetime(end_date)),
            )
            r = fetchone(cur)
            return self._to_record(r) if r else None

    def list_for_employee(self, employee_id: int, *, period: PerformancePeriod, limit: int) -> Sequence[Performance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS} FROM performances
                WHERE employee_id=%s AND period=%s AND is_active=1
                ORDER BY start_date DESC
                LIMIT %s
                """,
                (int(employee_id), period.value, int(limit)),
            )
            return [self._to_record(r) for r in fetchall(cur)]

    def list_by_period(
        self,
        period: PerformancePeriod,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Sequence[Performance]:
        clauses = ["period=%s", "is_active=1"]
        params: list[object] = [period.value]
        if start_date is not None:
            clauses.append("start_date>=%s")
            params.append(to_db_datetime(start_date))
        if end_date is not None:
            clauses.append("end_date<=%s")
            params.append(to_db_datetime(end_date))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM performances WHERE {where} ORDER BY start_date ASC, performance_id ASC",
                tuple(params),
            )
            return [self._to_record(r) for r in fetchall(cur)]

    def list_page(
        self,
        *,
        period: Optional[PerformancePeriod] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Performance], int]:
        clauses: list[str] = []
        params: list[object] = []
        if period is not None:
            clauses.append("period=%s")
            params.append(period.value)
        if created_from is not None:
            clauses.append("created_at>=%s")
            params.append(to_db_datetime(created_from))
        if created_to is not None:
            clauses.append("created_at<=%s")
            params.append(to_db_datetime(created_to))

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM performances{where}", tuple(params))
            total = int(fetchone(cur)["total"])
            cur.execute(
                f"SELECT {_COLUMNS} FROM performances{where} ORDER BY created_at DESC, performance_id DESC LIMIT %s OFFSET %s",
                (*params, int(limit), int(offset)),
            )
            return [self._to_record(r) for r in fetchall(cur)], total

    def save(self, record: Performance) -> Performance:
        counters = [getattr(record, name) for name in COUNTER_FIELDS]
        with db_cursor(self._conn_factory) as (_, cur):
            if record.performance_id is None:
                record.created_at = record.created_at or now_utc()
                placeholders = ",".join(["%s"] * (len(COUNTER_FIELDS) + 11))
                try:
                    cur.execute(
                        f"""
                        INSERT INTO performances(
                            employee_id, period, start_date, end_date, {", ".join(COUNTER_FIELDS)},
                            overall_score, grade, reviewed_by, review_date, review_notes, is_active, created_at
                        )
                        VALUES({placeholders})
                        """,
                        (
                            int(record.employee_id),
                            record.period.value,
                            to_db_datetime(record.start_date),
                            to_db_datetime(record.end_date),
                            *counters,
                            int(record.overall_score),
                            record.grade.value,
                            record.reviewed_by,
                            to_db_datetime(record.review_date),
                            record.review_notes,
                            1 if record.is_active else 0,
                            to_db_datetime(record.created_at),
                        ),
                    )
                except IntegrityError as e:
                    if e.errno == errorcode.ER_DUP_ENTRY:
                        raise DuplicateRecordError("Performance record already exists for this period") from e
                    raise
                record.performance_id = int(cur.lastrowid)
            else:
                assignments = ", ".join(f"{name}=%s" for name in COUNTER_FIELDS)
                cur.execute(
                    f"""
                    UPDATE performances
                    SET {assignments}, overall_score=%s, grade=%s,
                        reviewed_by=%s, review_date=%s, review_notes=%s, is_active=%s
                    WHERE performance_id=%s
                    """,
                    (
                        *counters,
                        int(record.overall_score),
                        record.grade.value,
                        record.reviewed_by,
                        to_db_datetime(record.review_date),
                        record.review_notes,
                        1 if record.is_active else 0,
                        int(record.performance_id),
                    ),
                )
        return record

    @staticmethod
    def _to_record(r: dict) -> Performance:
        return Performance(
            employee_id=int(r["employee_id"]),
            period=PerformancePeriod(r["period"]),
            start_date=from_db_datetime(r["start_date"]),
            end_date=from_db_datetime(r["end_date"]),
            performance_id=int(r["performance_id"]),
            reviewed_by=r.get("reviewed_by"),
            review_date=from_db_datetime(r.get("review_date")),
            review_notes=r.get("review_notes") or "",
            is_active=bool(r.get("is_active", True)),
            created_at=from_db_datetime(r.get("created_at")),
            **{name: r.get(name) or 0 for name in COUNTER_FIELDS},
        )
