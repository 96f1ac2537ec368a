from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from .model import SalesCall


class SalesCallSource(Protocol):
    def list_for_rep(self, sales_rep_id: int, *, start: datetime, end: datetime) -> Sequence[SalesCall]:
        """Calls scheduled in [start, end]."""

        raise NotImplementedError
