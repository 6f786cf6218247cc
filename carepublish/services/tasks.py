"""
Workflow tasks, in particular the review tasks that accompany content
awaiting approval.

Completing a task is part of an approval's critical path: failures raise.
Audit logging, sibling-task cancellation and notifications are secondary
and only logged when they fail.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import permissions
from ..logging_config import get_logger
from ..models.content import storage_type
from ..models.task import Task
from ..models.user import User
from .content_approval import ContentApprovalGateway
from .notifications import NotificationService
from .task_audit import TaskAuditService

logger = get_logger("tasks")

CONTENT_APPROVAL = "content_approval"
TASK_ACTIONS = ("approved", "rejected")


class TaskError(Exception):
    """Task operation refused or failed."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    def __init__(self, db: Session, audit: Optional[TaskAuditService] = None,
                 notifications: Optional[NotificationService] = None):
        self.db = db
        self.audit = audit or TaskAuditService(db)
        self.notifications = notifications or NotificationService(db)

    def _audit(self, task_id: int, user_id: Optional[int], action: str, details: dict) -> None:
        try:
            self.audit.log_task_action(task_id, user_id, action, details)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to log {action}", error=e, task_id=task_id)

    # ------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------

    def validate_task_creation(self, creator_id: int, assignee_id: int, facility_id: str, task_type: str) -> None:
        if not permissions.can_manage_tasks(self.db, creator_id, facility_id):
            raise TaskError("You do not have permission to create tasks")
        if task_type == CONTENT_APPROVAL and not permissions.has_approval_permission(self.db, assignee_id, facility_id):
            raise TaskError("Assigned user does not have approval permission")

    def create_task(
        self,
        facility_id: str,
        user_id: int,
        title: str,
        type: str,
        created_by: Optional[int] = None,
        description: Optional[str] = None,
        priority: str = "normal",
        due_date: Optional[datetime] = None,
        metadata: Optional[dict] = None,
        content_id: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Task:
        self.validate_task_creation(created_by or user_id, user_id, facility_id, type)

        task = Task(
            facility_id=facility_id,
            user_id=user_id,
            created_by=created_by,
            title=title,
            description=description,
            type=type,
            content_id=content_id,
            content_type=storage_type(content_type) if content_type else None,
            status="pending",
            priority=priority,
            due_date=due_date,
            extra_data=metadata or {},
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)

        self._audit(task.id, created_by or user_id, "task_created", {
            "title": title,
            "type": type,
            "priority": priority,
            "assignedTo": user_id,
        })
        return task

    def create_content_approval_tasks(self, content_id: str, content_type: str, facility_id: str) -> List[Task]:
        """Create one review task per approver of the facility and notify each of them."""
        content = ContentApprovalGateway(self.db).get_content(content_id, content_type)
        author = self.db.get(User, content.author_id) if content.author_id else None
        author_name = author.display_name if author else "Unknown"

        approvers = permissions.get_users_with_permission(self.db, facility_id, "approve_content")
        if not approvers:
            raise TaskError("No users found with approval permission")

        submitted_at = (content.submitted_for_approval_at or _utcnow()).isoformat()
        tasks = [
            self.create_task(
                facility_id=facility_id,
                user_id=approver["id"],
                title=f"Review: {content.title}",
                description=f"Content submitted by {author_name} requires approval",
                type=CONTENT_APPROVAL,
                content_id=content.id,
                content_type=content_type,
                metadata={
                    "contentId": content.id,
                    "contentType": content_type,
                    "contentTitle": content.title,
                    "authorId": content.author_id,
                    "authorName": author_name,
                    "submittedAt": submitted_at,
                    "revisionNumber": 1,
                    "previousRejections": 0,
                },
            )
            for approver in approvers
        ]

        for task in tasks:
            try:
                self.notifications.notify_task_assignment(
                    task.user_id, facility_id, task.id, task.title, task.description
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning("Failed to send task notification", error=e, task_id=task.id)

        logger.info(f"Created {len(tasks)} approval tasks", content_id=content_id, content_type=content_type)
        return tasks

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get_task(self, task_id: int) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def get_user_tasks(self, user_id: int, status: Optional[str] = None) -> List[Task]:
        query = self.db.query(Task).filter(Task.user_id == user_id)
        if status:
            query = query.filter(Task.status == status)
        return query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    def update_task(self, task_id: int, **fields) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise TaskError(f"Task {task_id} not found")
        for name, value in fields.items():
            setattr(task, name, value)
        self.db.commit()
        self.db.refresh(task)
        return task

    # ------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------

    def complete_content_approval_task(
        self,
        task_id: int,
        action: str,
        comments: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Task:
        """
        Mark a review task completed with the reviewer's outcome.

        Raises TaskError when the task is missing, already closed, or the
        user may not approve content at the task's facility.
        """
        if action not in TASK_ACTIONS:
            raise TaskError(f"Invalid task action: {action}")

        task = self.get_task(task_id)
        if task is None:
            raise TaskError(f"Task {task_id} not found")

        if user_id is not None and not permissions.has_approval_permission(self.db, user_id, task.facility_id):
            raise TaskError("You do not have permission to approve content")

        if task.status != "pending":
            raise TaskError(f"Task {task_id} is already {task.status}")

        actor_id = user_id if user_id is not None else task.user_id
        now = _utcnow()
        metadata = dict(task.extra_data or {})
        metadata.update({
            "action": action,
            "comments": comments,
            "completedBy": actor_id,
            "completedAt": now.isoformat(),
        })
        task = self.update_task(task_id, status="completed", completed_at=now, extra_data=metadata)

        content_id = task.content_id or metadata.get("contentId")
        content_type = task.content_type or metadata.get("contentType")
        details = {"action": action, "comments": comments, "contentId": content_id, "contentType": content_type}
        self._audit(task_id, actor_id, "task_completed", details)
        try:
            self.audit.log_status_change(task_id, actor_id, "completed", f"{action} content", details)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to log task status change", error=e, task_id=task_id)
        self._audit(
            task_id,
            actor_id,
            "content_approved" if action == "approved" else "content_rejected",
            {**details, "contentTitle": metadata.get("contentTitle")},
        )

        if content_id:
            try:
                self.cancel_pending_tasks_for_content(content_id, content_type)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning("Failed to cancel pending tasks for content", error=e, content_id=content_id)

        return task

    def cancel_pending_tasks_for_content(self, content_id: str, content_type: Optional[str] = None) -> int:
        query = self.db.query(Task).filter(
            Task.type == CONTENT_APPROVAL,
            Task.status == "pending",
            Task.content_id == content_id,
        )
        if content_type:
            query = query.filter(Task.content_type == storage_type(content_type))
        cancelled = query.update({Task.status: "cancelled"}, synchronize_session="fetch")
        self.db.commit()
        return cancelled

    # ------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------

    def cleanup_old_tasks(self, days_old: int = 30) -> int:
        """Delete tasks completed more than ``days_old`` days ago."""
        cutoff = _utcnow() - timedelta(days=days_old)
        count = self.db.query(Task).filter(
            Task.status == "completed",
            Task.completed_at < cutoff,
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Cleaned up {count} old completed tasks", days_old=days_old)
        return count

    def handle_permission_changes(self, facility_id: str) -> int:
        """Cancel pending review tasks of users who lost approval permission."""
        pending = self.db.query(Task).filter(
            Task.facility_id == facility_id,
            Task.type == CONTENT_APPROVAL,
            Task.status == "pending",
        ).all()
        if not pending:
            return 0

        approver_ids = {a["id"] for a in permissions.get_users_with_permission(self.db, facility_id, "approve_content")}
        to_cancel = [task for task in pending if task.user_id not in approver_ids]
        for task in to_cancel:
            task.status = "cancelled"
        self.db.commit()

        if to_cancel:
            logger.info(f"Cancelled {len(to_cancel)} tasks due to permission changes", facility_id=facility_id)
        return len(to_cancel)
