from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.enums import NotificationType


@dataclass(frozen=True)
class NotificationEvent:
    recipient_id: int
    type: NotificationType
    title: str
    message: str
    sender_id: Optional[int] = None
    task_id: Optional[int] = None
    created_at: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)
