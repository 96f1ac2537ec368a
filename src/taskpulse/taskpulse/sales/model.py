from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SalesCall:
    sales_rep_id: int
    scheduled_date: datetime
    is_successful: bool = False
    deal_value: float = 0
    deal_closed: bool = False
