from __future__ import annotations

from typing import Iterable, Mapping, Optional, Protocol

from .model import Employee


class EmployeeDirectory(Protocol):
    """Lookup of employees by id.

    Services depend on this interface, not on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[int]) -> Mapping[int, Employee]:
        raise NotImplementedError
