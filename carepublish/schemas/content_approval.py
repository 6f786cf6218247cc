from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional

ContentType = Literal["course", "policy", "procedure", "learning_pathway"]


class ContentApproval(BaseModel):
    """Pending content item, unified across courses, policies and procedures."""
    model_config = ConfigDict(extra="forbid")

    id: str
    title: str
    description: Optional[str] = None
    type: ContentType
    author_id: Optional[int] = None
    author_name: str = "Unknown"
    submitted_at: datetime
    revision_number: int = 1
    previous_rejections: int = 0
    facility_id: Optional[str] = None
    task_id: Optional[int] = None


class ContentRecord(BaseModel):
    """Full state of a content row, as stored."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    author_id: Optional[int] = None
    approval_status: str
    submitted_for_approval_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    published_at: Optional[datetime] = None


class ApproveRequest(BaseModel):
    comment: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = ""

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        return value.strip()


class ToastResponse(BaseModel):
    kind: str
    message: str
    severity: Optional[str] = None
    duration_ms: int


class HighlightResponse(BaseModel):
    content_id: str
    duration_seconds: int


class PendingContentResponse(BaseModel):
    status: str
    items: List[ContentApproval] = Field(default_factory=list)
    highlight: Optional[HighlightResponse] = None


class ActionResponse(BaseModel):
    ok: bool
    content_id: str
    item_state: str
    task_completed: bool = False
    notified: bool = False
    toast: Optional[ToastResponse] = None
