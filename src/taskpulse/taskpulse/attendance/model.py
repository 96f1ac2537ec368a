from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """One day of attendance for one user."""

    user_id: int
    work_date: date
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]
    status: AttendanceStatus

    @property
    def is_present(self) -> bool:
        return self.status in {AttendanceStatus.ON_TIME, AttendanceStatus.LATE, AttendanceStatus.EARLY_LEAVE}
