from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: str
    teacher_id: str
    event_type: str
    title: str
    message: str
    payload: dict[str, Any] = {}
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
