from __future__ import annotations

from ..common.datetime_utils import now_utc
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, to_db_datetime
from .model import NotificationEvent
from .sink import NotificationSink


class MySQLNotificationSink(NotificationSink):
    """Stores events in `notifications`; delivery channels read from there."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def send(self, event: NotificationEvent) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO notifications(recipient_id, sender_id, type, title, message, task_id, data, is_read, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,0,%s)
                """,
                (
                    int(event.recipient_id),
                    event.sender_id,
                    event.type.value,
                    event.title,
                    event.message,
                    event.task_id,
                    dump_json(event.data),
                    to_db_datetime(event.created_at or now_utc()),
                ),
            )
