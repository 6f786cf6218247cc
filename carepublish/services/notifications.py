"""
In-app notifications for content authors and task assignees.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.notification import Notification
from ..models.user import User
from ..schemas.content_approval import ContentApproval


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def _create(self, user_id: int, facility_id: Optional[str], type: str, title: str,
                message: Optional[str] = None, extra_data: Optional[dict] = None) -> Notification:
        notification = Notification(
            user_id=user_id,
            facility_id=facility_id,
            type=type,
            title=title,
            message=message,
            extra_data=extra_data,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def notify_content_decision(
        self,
        content: ContentApproval,
        action: str,
        reviewer: User,
        reason: Optional[str] = None,
    ) -> Optional[Notification]:
        """Tell the author their content was approved or rejected."""
        if content.author_id is None:
            return None

        if action == "approved":
            title = f"Approved: {content.title}"
            message = f"{reviewer.display_name} approved your {content.type.replace('_', ' ')}. It is now published."
        else:
            title = f"Changes requested: {content.title}"
            message = f"{reviewer.display_name} rejected your {content.type.replace('_', ' ')}."
            if reason:
                message += f" Reason: {reason}"

        return self._create(
            user_id=content.author_id,
            facility_id=content.facility_id,
            type=f"content_{action}",
            title=title,
            message=message,
            extra_data={
                "contentId": content.id,
                "contentType": content.type,
                "reviewerId": reviewer.id,
                "reason": reason,
            },
        )

    def notify_task_assignment(self, user_id: int, facility_id: str, task_id: int,
                               title: str, description: Optional[str] = None) -> Notification:
        return self._create(
            user_id=user_id,
            facility_id=facility_id,
            type="task_assigned",
            title=f"New task: {title}",
            message=description,
            extra_data={"taskId": task_id},
        )

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def mark_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if notification is None:
            return None
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
