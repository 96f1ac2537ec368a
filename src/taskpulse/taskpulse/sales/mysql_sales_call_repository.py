from __future__ import annotations

from datetime import datetime
from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, from_db_datetime, to_db_datetime
from .model import SalesCall
from .repository import SalesCallSource


class MySQLSalesCallRepository(SalesCallSource):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_rep(self, sales_rep_id: int, *, start: datetime, end: datetime) -> Sequence[SalesCall]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT sales_rep_id, scheduled_date, is_successful, deal_value, deal_closed
                FROM sales_calls
                WHERE sales_rep_id=%s AND scheduled_date BETWEEN %s AND %s
                ORDER BY scheduled_date ASC
                """,
                (int(sales_rep_id), to_db_datetime(start), to_db_datetime(end)),
            )
            return [
                SalesCall(
                    sales_rep_id=int(r["sales_rep_id"]),
                    scheduled_date=from_db_datetime(r["scheduled_date"]),
                    is_successful=bool(r.get("is_successful")),
                    deal_value=float(r.get("deal_value") or 0),
                    deal_closed=bool(r.get("deal_closed")),
                )
                for r in fetchall(cur)
            ]
