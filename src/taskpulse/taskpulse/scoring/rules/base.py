from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ...tasks.model import LedgerEntry, Task


class ScoringRules(ABC):
    """Point values for one task/assignee pair (Strategy Pattern for scoring)."""

    @abstractmethod
    def completion_points(self, task: Task, entry: Optional[LedgerEntry], *, on_time: bool) -> int:
        raise NotImplementedError

    @abstractmethod
    def in_progress_points(self, task: Task) -> int:
        raise NotImplementedError

    @abstractmethod
    def progress_points(self, percentage: float) -> int:
        raise NotImplementedError
