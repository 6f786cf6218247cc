"""
Task routes for the signed-in user's workflow tasks.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..models.user import User
from ..auth import get_required_user
from ..responses import not_found
from ..schemas.task import TaskResponse, TaskAuditLogResponse, TaskStatusHistoryResponse
from ..services.task_audit import TaskAuditService
from ..services.tasks import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskResponse])
def get_tasks(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Tasks assigned to the current user, newest first."""
    return TaskService(db).get_user_tasks(current_user.id, status)


def _own_task(task_id: int, db: Session, current_user: User):
    task = TaskService(db).get_task(task_id)
    if task is None or task.user_id != current_user.id:
        not_found("Task", str(task_id))
    return task


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    return _own_task(task_id, db, current_user)


@router.get("/{task_id}/audit", response_model=List[TaskAuditLogResponse])
def get_task_audit_trail(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Audit trail of a task assigned to the current user."""
    _own_task(task_id, db, current_user)
    return TaskAuditService(db).get_task_audit_trail(task_id)


@router.get("/{task_id}/history", response_model=List[TaskStatusHistoryResponse])
def get_task_status_history(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    _own_task(task_id, db, current_user)
    return TaskAuditService(db).get_task_status_history(task_id)
