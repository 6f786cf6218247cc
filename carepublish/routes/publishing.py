"""
Publishing routes for reviewing content awaiting approval.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import permissions
from ..auth import get_required_user
from ..config import get_settings
from ..database import get_db
from ..facility import get_current_facility_id
from ..limiter import limiter
from ..logging_config import approval_logger
from ..models.user import User
from ..responses import approval_failure, forbidden, toast_to_dict, validation_error
from ..schemas.content_approval import (
    ActionResponse,
    ApproveRequest,
    ContentRecord,
    ContentType,
    PendingContentResponse,
    RejectRequest,
)
from ..schemas.task import TaskAuditLogResponse
from ..services.approval_errors import handle_approval_error
from ..services.content_approval import ContentApprovalGateway
from ..services.notifications import NotificationService
from ..services.publishing import ActionOutcome, PublishingTab
from ..services.task_audit import TaskAuditService
from ..services.tasks import TaskError, TaskService

settings = get_settings()

router = APIRouter(prefix="/api/publishing", tags=["publishing"])


def build_publishing_tab(db: Session, highlight_id: Optional[str] = None) -> PublishingTab:
    notifications = NotificationService(db)
    return PublishingTab(
        gateway=ContentApprovalGateway(db),
        tasks=TaskService(db, notifications=notifications),
        notifications=notifications,
        highlight_id=highlight_id,
    )


def require_approver(
    facility_id: str = Depends(get_current_facility_id),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
) -> str:
    """Facility id, once the user is known to be allowed to approve there."""
    if not permissions.has_approval_permission(db, current_user.id, facility_id):
        forbidden("You do not have permission to approve content")
    return facility_id


def outcome_to_response(outcome: ActionOutcome) -> ActionResponse:
    if outcome.error is not None:
        approval_failure(outcome.error, outcome.toast)
    return ActionResponse(
        ok=outcome.ok,
        content_id=outcome.content_id,
        item_state=outcome.item_state.value,
        task_completed=outcome.task_completed,
        notified=outcome.notified,
        toast=toast_to_dict(outcome.toast),
    )


@router.get("/pending", response_model=PendingContentResponse)
def get_pending_content(
    highlight: Optional[str] = None,
    facility_id: str = Depends(require_approver),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Pending content for the current facility, newest first."""
    tab = build_publishing_tab(db, highlight)
    tab.load(facility_id, current_user.id)
    directive = tab.highlight()
    return PendingContentResponse(
        status=tab.state.value,
        items=tab.items,
        highlight={"content_id": directive.content_id, "duration_seconds": directive.duration_seconds} if directive else None,
    )


@router.get("/{content_type}/{content_id}", response_model=ContentRecord, dependencies=[Depends(get_current_facility_id)])
def get_content(
    content_type: ContentType,
    content_id: str,
    db: Session = Depends(get_db),
):
    """Current state of a content item."""
    try:
        return ContentApprovalGateway(db).get_content(content_id, content_type)
    except Exception as e:
        approval_failure(handle_approval_error(e, {"content_id": content_id, "content_type": content_type}))


@router.get("/{content_type}/{content_id}/audit", response_model=List[TaskAuditLogResponse])
def get_content_audit_trail(
    content_type: ContentType,
    content_id: str,
    facility_id: str = Depends(get_current_facility_id),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Audit entries of every review task opened for a content item, newest first."""
    if not permissions.can_view_audit_logs(db, current_user.id, facility_id):
        forbidden("You do not have permission to view audit logs")
    return TaskAuditService(db).get_content_approval_audit_trail(content_id, content_type)


@router.post("/{content_type}/{content_id}/approve", response_model=ActionResponse)
@limiter.limit(settings.approval_rate_limit)
def approve_content(
    request: Request,
    content_type: ContentType,
    content_id: str,
    body: Optional[ApproveRequest] = None,
    facility_id: str = Depends(require_approver),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Approve and publish a pending item."""
    tab = build_publishing_tab(db)
    tab.load(facility_id, current_user.id)
    comment = body.comment if body else None
    return outcome_to_response(tab.approve(content_id, current_user, comment, content_type))


@router.post("/{content_type}/{content_id}/reject", response_model=ActionResponse)
@limiter.limit(settings.approval_rate_limit)
def reject_content(
    request: Request,
    content_type: ContentType,
    content_id: str,
    body: RejectRequest,
    facility_id: str = Depends(require_approver),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Reject a pending item. A reason is required."""
    if not body.reason:
        validation_error("A rejection reason is required", {"field": "reason"})

    tab = build_publishing_tab(db)
    tab.load(facility_id, current_user.id)
    return outcome_to_response(tab.reject(content_id, current_user, body.reason, content_type))


@router.post("/{content_type}/{content_id}/submit", response_model=ContentRecord)
def submit_content(
    content_type: ContentType,
    content_id: str,
    facility_id: str = Depends(get_current_facility_id),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Send a draft or rejected item for review and open review tasks for the facility's approvers."""
    if not permissions.can_edit_content(db, current_user.id, facility_id, content_id, content_type):
        forbidden("You do not have permission to submit this content")

    try:
        record = ContentApprovalGateway(db).submit_for_approval(content_id, content_type)
    except Exception as e:
        approval_failure(handle_approval_error(e, {"content_id": content_id, "content_type": content_type}))

    try:
        TaskService(db).create_content_approval_tasks(content_id, content_type, facility_id)
    except (TaskError, SQLAlchemyError) as e:
        db.rollback()
        approval_logger.warning("Review tasks not created", error=e, content_id=content_id, facility_id=facility_id)
    return record
