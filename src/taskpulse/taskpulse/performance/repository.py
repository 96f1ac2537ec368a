from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.enums import PerformancePeriod
from .model import Performance


class PerformanceRepository(Protocol):
    def get_by_id(self, performance_id: int) -> Optional[Performance]:
        raise NotImplementedError

    def find_window(
        self,
        *,
        employee_id: int,
        period: PerformancePeriod,
        start_date: datetime,
        end_date: datetime,
    ) -> Optional[Performance]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: int, *, period: PerformancePeriod, limit: int) -> Sequence[Performance]:
        """Active records, newest start_date first."""

        raise NotImplementedError

    def list_by_period(
        self,
        period: PerformancePeriod,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Sequence[Performance]:
        """Active records with start_date >= start_date and end_date <= end_date."""

        raise NotImplementedError

    def list_page(
        self,
        *,
        period: Optional[PerformancePeriod] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        offset: int = 0,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Performance], int]:
        """One page of records (active or not), newest created first, plus the total match count."""

        raise NotImplementedError

    def save(self, record: Performance) -> Performance:
        """Insert (performance_id is None) or update counters/review fields.

        Raises DuplicateRecordError when the window already has a record.
        """

        raise NotImplementedError
