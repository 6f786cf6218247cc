"""
Notification routes for the signed-in user's inbox.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..models.user import User
from ..auth import get_required_user
from ..responses import not_found
from ..schemas.notification import NotificationResponse
from ..services.notifications import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    return NotificationService(db).list_for_user(current_user.id, unread_only, limit)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    notification = NotificationService(db).mark_read(notification_id, current_user.id)
    if notification is None:
        not_found("Notification", str(notification_id))
    return notification
