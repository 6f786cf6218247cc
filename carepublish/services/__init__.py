from .approval_errors import (
    ApprovalError,
    ApprovalErrorCode,
    handle_approval_action_error,
    handle_approval_error,
    show_error_toast,
)
from .content_approval import ContentApprovalGateway
from .notifications import NotificationService
from .publishing import PublishingTab
from .task_audit import TaskAuditService
from .tasks import TaskService

__all__ = [
    "ApprovalError",
    "ApprovalErrorCode",
    "handle_approval_action_error",
    "handle_approval_error",
    "show_error_toast",
    "ContentApprovalGateway",
    "NotificationService",
    "PublishingTab",
    "TaskAuditService",
    "TaskService",
]
