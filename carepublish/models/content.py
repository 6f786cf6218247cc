"""
Content models reviewed by the approval workflow: courses, policies, procedures.
"""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import declared_attr, relationship
from datetime import datetime, timezone
from ..database import Base

# approval_status: draft -> pending_approval -> approved | rejected


def _new_id() -> str:
    return str(uuid.uuid4())


class ContentMixin:
    """Columns shared by every approvable content table."""

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    approval_status = Column(String(32), default="draft", nullable=False, index=True)
    submitted_for_approval_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @declared_attr
    def author_id(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    @declared_attr
    def approved_by(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @declared_attr
    def rejected_by(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @declared_attr
    def author(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.author_id")


class Course(ContentMixin, Base):
    __tablename__ = "courses"

    facility_id = Column(String(64), ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True, index=True)


class Policy(ContentMixin, Base):
    # No facility column yet
    __tablename__ = "policies"


class Procedure(ContentMixin, Base):
    # No facility column yet
    __tablename__ = "procedures"


# Content type -> table; learning pathways are stored as courses
CONTENT_MODELS = {
    "course": Course,
    "learning_pathway": Course,
    "policy": Policy,
    "procedure": Procedure,
}


def storage_type(content_type: str) -> str:
    """Content type naming the table a row lives in."""
    return "course" if content_type == "learning_pathway" else content_type
