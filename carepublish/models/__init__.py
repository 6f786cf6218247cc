from .facility import Facility, UserFacility
from .user import User
from .content import Course, Policy, Procedure
from .task import Task
from .task_audit import TaskAuditLog, TaskStatusHistory
from .notification import Notification

__all__ = [
    "Facility",
    "UserFacility",
    "User",
    "Course",
    "Policy",
    "Procedure",
    "Task",
    "TaskAuditLog",
    "TaskStatusHistory",
    "Notification",
]
