from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class TaskResponse(BaseModel):
    id: int
    facility_id: str
    user_id: int
    created_by: Optional[int] = None
    title: str
    description: Optional[str] = None
    type: str
    content_id: Optional[str] = None
    content_type: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    extra_data: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskAuditLogResponse(BaseModel):
    id: int
    task_id: int
    user_id: Optional[int] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class TaskStatusHistoryResponse(BaseModel):
    id: int
    task_id: int
    status: str
    changed_by: Optional[int] = None
    changed_at: datetime
    reason: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True
