from .auth import UserCreate, UserLogin, UserResponse, TokenResponse, RefreshRequest
from .content_approval import (
    ContentApproval,
    ContentRecord,
    ApproveRequest,
    RejectRequest,
    PendingContentResponse,
    ActionResponse,
)
from .facility import FacilityResponse
from .notification import NotificationResponse
from .task import TaskResponse, TaskAuditLogResponse

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "TokenResponse", "RefreshRequest",
    "ContentApproval", "ContentRecord", "ApproveRequest", "RejectRequest",
    "PendingContentResponse", "ActionResponse",
    "FacilityResponse",
    "NotificationResponse",
    "TaskResponse", "TaskAuditLogResponse",
]
