from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Employee:
    """Read model of a user account, as far as tasks and scoring need it."""

    user_id: int
    full_name: str
    role: Role
    designation: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True
