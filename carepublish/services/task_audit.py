"""
Audit trail for task actions and task status changes.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.content import storage_type
from ..models.task import Task
from ..models.task_audit import TaskAuditLog, TaskStatusHistory


class TaskAuditService:
    def __init__(self, db: Session):
        self.db = db

    def log_task_action(
        self,
        task_id: int,
        user_id: Optional[int],
        action: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> TaskAuditLog:
        entry = TaskAuditLog(task_id=task_id, user_id=user_id, action=action, details=details or {})
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def log_status_change(
        self,
        task_id: int,
        user_id: Optional[int],
        status: str,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TaskStatusHistory:
        entry = TaskStatusHistory(
            task_id=task_id,
            status=status,
            changed_by=user_id,
            reason=reason,
            extra_data=metadata,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_task_audit_trail(self, task_id: int) -> List[TaskAuditLog]:
        return self.db.query(TaskAuditLog).filter(
            TaskAuditLog.task_id == task_id
        ).order_by(TaskAuditLog.timestamp.desc(), TaskAuditLog.id.desc()).all()

    def get_task_status_history(self, task_id: int) -> List[TaskStatusHistory]:
        return self.db.query(TaskStatusHistory).filter(
            TaskStatusHistory.task_id == task_id
        ).order_by(TaskStatusHistory.changed_at.desc(), TaskStatusHistory.id.desc()).all()

    def get_content_approval_audit_trail(self, content_id: str, content_type: Optional[str] = None) -> List[TaskAuditLog]:
        """Audit entries of every approval task that reviewed a content item."""
        query = self.db.query(TaskAuditLog).join(Task, TaskAuditLog.task_id == Task.id).filter(
            Task.type == "content_approval",
            Task.content_id == content_id,
        )
        if content_type:
            query = query.filter(Task.content_type == storage_type(content_type))
        return query.order_by(TaskAuditLog.timestamp.desc(), TaskAuditLog.id.desc()).all()
