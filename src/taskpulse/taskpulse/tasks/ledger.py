from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from ..common.datetime_utils import elapsed_ms
from ..core.exceptions import AlreadyActiveError, NoActiveSessionError, NotAssignedError
from .model import LedgerEntry, Task, TrackingSession

logger = logging.getLogger(__name__)


class TimeTrackingLedger:
    """Per-assignee start/stop time tracking on a task.

    `total_time_spent` only ever grows by the duration of a closed session,
    so it always equals the sum of `sessions[*].duration`.
    """

    def start(self, task: Task, user_id: int, *, now: datetime) -> LedgerEntry:
        if not task.is_assigned(user_id):
            raise NotAssignedError()

        entry = task.ledger_for(user_id)
        if entry is not None and entry.is_active:
            raise AlreadyActiveError()

        if entry is None:
            entry = LedgerEntry(user_id=user_id, last_activity=now)
            task.time_tracking.append(entry)

        entry.is_active = True
        entry.current_session_start = now
        entry.last_activity = now
        return entry

    def stop(self, task: Task, user_id: int, notes: str = "", *, now: datetime) -> TrackingSession:
        entry = task.ledger_for(user_id)
        if entry is None or not entry.is_active or entry.current_session_start is None:
            raise NoActiveSessionError()

        start_time = entry.current_session_start
        # Clock skew between writers must never produce a negative session.
        duration = max(elapsed_ms(start_time, now), 0)
        session = TrackingSession(start_time=start_time, end_time=now, duration=duration, notes=(notes or "").strip())

        entry.sessions.append(session)
        entry.total_time_spent += duration
        entry.is_active = False
        entry.current_session_start = None
        entry.last_activity = now
        return session

    def stop_all(self, task: Task, notes: str, *, now: datetime) -> List[TrackingSession]:
        stopped = []
        for entry in task.active_trackers:
            stopped.append(self.stop(task, entry.user_id, notes, now=now))
        if stopped:
            logger.info("Force-stopped %d session(s) on task %s: %s", len(stopped), task.task_id, notes)
        return stopped
