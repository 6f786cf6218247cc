"""
Content Approval Data Gateway

Reads pending content from the courses, policies and procedures tables as a
single list, and moves rows out of ``pending_approval`` with a conditional
UPDATE so that two reviewers cannot both apply a transition.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Type

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..logging_config import approval_logger, timed
from ..models.content import CONTENT_MODELS, storage_type
from ..models.task import Task
from ..models.user import User
from ..schemas.content_approval import ContentApproval, ContentRecord
from .approval_errors import (
    ContentNoLongerPending,
    ContentNotFound,
    ContentNotSubmittable,
    InvalidContentType,
)

PENDING_APPROVAL = "pending_approval"
APPROVED = "approved"
REJECTED = "rejected"

# Types queried for the pending list; learning pathways are stored as courses
LISTED_TYPES = ("course", "policy", "procedure")

# Only courses carry a facility column
FACILITY_SCOPED_TYPES = ("course",)

SUBMITTABLE_STATUSES = ("draft", REJECTED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def author_display_name(author: Optional[User]) -> str:
    if author is None:
        return "Unknown"
    return author.display_name


class ContentApprovalGateway:
    """Fetch and transition content awaiting approval."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def model_for(content_type: str) -> Type:
        try:
            return CONTENT_MODELS[content_type]
        except KeyError:
            raise InvalidContentType(content_type) from None

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    @timed(approval_logger)
    def get_pending_content(self, facility_id: str, reviewer_id: Optional[int] = None) -> List[ContentApproval]:
        """
        Pending items for a facility, newest submission first.

        A content type whose query fails contributes no items; the others
        are still returned.
        """
        items: List[ContentApproval] = []
        for content_type in LISTED_TYPES:
            try:
                items.extend(self._pending_for_type(content_type, facility_id))
            except (SQLAlchemyError, ValidationError) as e:
                self.db.rollback()
                approval_logger.error(
                    f"Failed to load pending {content_type} content",
                    error=e,
                    content_type=content_type,
                    facility_id=facility_id,
                )

        self._link_tasks(items, facility_id, reviewer_id)
        items.sort(key=lambda item: item.submitted_at, reverse=True)
        return items

    def _pending_for_type(self, content_type: str, facility_id: str) -> List[ContentApproval]:
        model = CONTENT_MODELS[content_type]
        query = self.db.query(model, User).outerjoin(User, model.author_id == User.id).filter(
            model.approval_status == PENDING_APPROVAL,
            model.published_at.is_(None),
        )
        if content_type in FACILITY_SCOPED_TYPES:
            query = query.filter(model.facility_id == facility_id)

        items = []
        for row, author in query.all():
            items.append(ContentApproval.model_validate({
                "id": row.id,
                "title": row.title,
                "description": row.description,
                "type": content_type,
                "author_id": row.author_id,
                "author_name": author_display_name(author),
                "submitted_at": row.submitted_for_approval_at or row.created_at,
                "facility_id": getattr(row, "facility_id", None) or facility_id,
            }))
        return items

    def _link_tasks(self, items: List[ContentApproval], facility_id: str, reviewer_id: Optional[int]) -> None:
        if not items:
            return
        try:
            tasks = self.db.query(Task).filter(
                Task.facility_id == facility_id,
                Task.type == "content_approval",
                Task.status == "pending",
                Task.content_id.in_([item.id for item in items]),
            ).order_by(Task.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            approval_logger.warning("Could not link approval tasks", error=e, facility_id=facility_id)
            return

        by_content: Dict[Tuple[str, str], Task] = {}
        for task in tasks:
            key = (storage_type(task.content_type or ""), task.content_id)
            current = by_content.get(key)
            # Prefer the reviewer's own task
            if current is None or (reviewer_id is not None and task.user_id == reviewer_id and current.user_id != reviewer_id):
                by_content[key] = task

        for item in items:
            task = by_content.get((storage_type(item.type), item.id))
            if task is not None:
                item.task_id = task.id

    def get_content(self, content_id: str, content_type: str) -> ContentRecord:
        model = self.model_for(content_type)
        row = self.db.get(model, content_id)
        if row is None:
            raise ContentNotFound(content_id, content_type)
        return ContentRecord.model_validate(row)

    def get_content_status(self, content_id: str, content_type: str) -> Optional[str]:
        """Current approval status, or None when the row does not exist."""
        model = self.model_for(content_type)
        return self.db.query(model.approval_status).filter(model.id == content_id).scalar()

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    def approve_content(self, content_id: str, content_type: str, approved_by: int) -> None:
        """Approve and publish a pending item."""
        now = _utcnow()
        self._transition(content_id, content_type, {
            "approval_status": APPROVED,
            "approved_at": now,
            "approved_by": approved_by,
            "published_at": now,
        })
        approval_logger.info("Content approved", content_id=content_id, content_type=content_type, approved_by=approved_by)

    def reject_content(self, content_id: str, content_type: str, rejected_by: int, reason: Optional[str]) -> None:
        """Reject a pending item; it stays unpublished."""
        self._transition(content_id, content_type, {
            "approval_status": REJECTED,
            "rejected_at": _utcnow(),
            "rejected_by": rejected_by,
            "rejection_reason": reason,
        })
        approval_logger.info("Content rejected", content_id=content_id, content_type=content_type, rejected_by=rejected_by)

    def _transition(self, content_id: str, content_type: str, values: dict) -> None:
        model = self.model_for(content_type)

        current_status = self.get_content_status(content_id, content_type)
        if current_status is None:
            raise ContentNotFound(content_id, content_type)
        if current_status != PENDING_APPROVAL:
            raise ContentNoLongerPending(content_id, current_status)

        try:
            result = self.db.execute(
                update(model)
                .where(model.id == content_id, model.approval_status == PENDING_APPROVAL)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Lost the race between the status check and the write
                self.db.rollback()
                raise ContentNoLongerPending(content_id, self.get_content_status(content_id, content_type))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def submit_for_approval(self, content_id: str, content_type: str) -> ContentRecord:
        """Move a draft or rejected item into review."""
        model = self.model_for(content_type)
        row = self.db.get(model, content_id)
        if row is None:
            raise ContentNotFound(content_id, content_type)
        if row.approval_status not in SUBMITTABLE_STATUSES:
            raise ContentNotSubmittable(content_id, row.approval_status)

        row.approval_status = PENDING_APPROVAL
        row.submitted_for_approval_at = _utcnow()
        row.published_at = None
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(row)
        approval_logger.info("Content submitted for approval", content_id=content_id, content_type=content_type)
        return ContentRecord.model_validate(row)
