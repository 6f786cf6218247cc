from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    facility_id: Optional[str] = None
    type: str
    title: str
    message: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
