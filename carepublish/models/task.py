"""
Task model for workflow tasks such as content approval reviews.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from ..database import Base


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    facility_id = Column(String(64), ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False, index=True)  # content_approval, ...
    content_id = Column(String(36), nullable=True, index=True)  # reviewed content, for content_approval tasks
    content_type = Column(String(32), nullable=True)  # course, policy, procedure
    status = Column(String(20), default="pending", index=True)  # pending, completed, cancelled
    priority = Column(String(20), default="normal")  # low, normal, high, urgent
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    extra_data = Column(JSON, nullable=True, default=dict)  # contentId, contentType, action, comments, ...
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    assignee = relationship("User", foreign_keys=[user_id])
    audit_logs = relationship("TaskAuditLog", back_populates="task", cascade="all, delete-orphan")
    status_history = relationship("TaskStatusHistory", back_populates="task", cascade="all, delete-orphan")
