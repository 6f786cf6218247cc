"""
Role permission catalog and facility-scoped permission checks.

The catalog is a fixed table: the same role always resolves to the same
capability set. Database-backed checks look up the user's role at a
facility and then consult the catalog.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .logging_config import get_logger
from .models.content import CONTENT_MODELS
from .models.facility import UserFacility
from .models.user import User

logger = get_logger("permissions")

DEFAULT_ROLE = "viewer"


class Permission(BaseModel):
    """Capability flags granted to a role."""
    model_config = ConfigDict(frozen=True)

    approve_content: bool = False
    create_content: bool = False
    edit_content: bool = False
    delete_content: bool = False
    manage_users: bool = False
    view_analytics: bool = False
    view_audit_logs: bool = False


class RoleInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    display_name: str


class UserPermissions(BaseModel):
    user_id: int
    facility_id: str
    role: str
    permissions: Permission


ROLE_CATALOG: Dict[str, tuple] = {
    "administrator": (
        RoleInfo(id="administrator", name="administrator", display_name="Administrator"),
        Permission(
            approve_content=True,
            create_content=True,
            edit_content=True,
            delete_content=True,
            manage_users=True,
            view_analytics=True,
            view_audit_logs=True,
        ),
    ),
    "manager": (
        RoleInfo(id="manager", name="manager", display_name="Manager"),
        Permission(
            approve_content=True,
            create_content=True,
            edit_content=True,
            view_analytics=True,
            view_audit_logs=True,
        ),
    ),
    "technician": (
        RoleInfo(id="technician", name="technician", display_name="Technician"),
        Permission(create_content=True, edit_content=True),
    ),
    "trainer": (
        RoleInfo(id="trainer", name="trainer", display_name="Trainer"),
        Permission(create_content=True, edit_content=True),
    ),
    "viewer": (
        RoleInfo(id="viewer", name="viewer", display_name="Viewer"),
        Permission(),
    ),
}


def get_permissions_for_role(role: Optional[str]) -> Permission:
    """Return the capability set for a role, least-privileged for unknown roles."""
    entry = ROLE_CATALOG.get(role or "") or ROLE_CATALOG[DEFAULT_ROLE]
    return entry[1]


def get_approval_roles() -> List[RoleInfo]:
    """Roles allowed to approve content."""
    return [info for info, permissions in ROLE_CATALOG.values() if permissions.approve_content]


def get_roles_with_permission(permission: str) -> List[str]:
    return [info.id for info, permissions in ROLE_CATALOG.values() if getattr(permissions, permission, False)]


# ============================================================
# FACILITY-SCOPED CHECKS
# ============================================================

def get_user_role(db: Session, user_id: int, facility_id: str) -> Optional[str]:
    """Role of a user at a facility, or None when they have no membership."""
    try:
        membership = db.query(UserFacility).filter(
            UserFacility.user_id == user_id,
            UserFacility.facility_id == facility_id,
        ).first()
    except SQLAlchemyError as e:
        logger.error("Error looking up facility role", error=e, user_id=user_id, facility_id=facility_id)
        return None

    if membership:
        return membership.role

    # Users carry a home facility and role directly
    user = db.get(User, user_id)
    if user and user.facility_id == facility_id:
        return user.role
    return None


def _has_permission(db: Session, user_id: int, facility_id: str, permission: str) -> bool:
    role = get_user_role(db, user_id, facility_id)
    if role is None:
        return False
    return getattr(get_permissions_for_role(role), permission)


def has_approval_permission(db: Session, user_id: int, facility_id: str) -> bool:
    return _has_permission(db, user_id, facility_id, "approve_content")


def can_create_content(db: Session, user_id: int, facility_id: str) -> bool:
    return _has_permission(db, user_id, facility_id, "create_content")


def can_manage_tasks(db: Session, user_id: int, facility_id: str) -> bool:
    """Task management follows the approval roles."""
    return _has_permission(db, user_id, facility_id, "approve_content")


def can_view_audit_logs(db: Session, user_id: int, facility_id: str) -> bool:
    return _has_permission(db, user_id, facility_id, "view_audit_logs")


def can_edit_content(db: Session, user_id: int, facility_id: str, content_id: str, content_type: str) -> bool:
    """
    Approvers may edit any content at their facility; other editors only
    content they authored.
    """
    role = get_user_role(db, user_id, facility_id)
    if role is None:
        return False
    granted = get_permissions_for_role(role)
    if granted.approve_content:
        return True
    if not granted.edit_content or content_type not in CONTENT_MODELS:
        return False

    model = CONTENT_MODELS[content_type]
    try:
        query = db.query(model).filter(model.id == content_id)
        if hasattr(model, "facility_id"):
            query = query.filter(model.facility_id == facility_id)
        content = query.first()
    except SQLAlchemyError as e:
        logger.error("Error checking content ownership", error=e, user_id=user_id, content_id=content_id)
        return False
    return content is not None and content.author_id == user_id


def get_user_permissions(db: Session, user_id: int, facility_id: str) -> Optional[UserPermissions]:
    role = get_user_role(db, user_id, facility_id)
    if not role:
        return None
    return UserPermissions(
        user_id=user_id,
        facility_id=facility_id,
        role=role,
        permissions=get_permissions_for_role(role),
    )


def get_users_with_permission(db: Session, facility_id: str, permission: str) -> List[dict]:
    """
    List users of a facility whose role grants ``permission``.

    Both explicit memberships and users whose home facility matches are
    considered; a membership role wins over the home role.
    """
    roles = set(get_roles_with_permission(permission))
    found: Dict[int, dict] = {}

    memberships = db.query(UserFacility).filter(UserFacility.facility_id == facility_id).all()
    membership_ids = {m.user_id for m in memberships}
    for membership in memberships:
        if membership.role in roles and membership.user is not None:
            found[membership.user_id] = {
                "id": membership.user_id,
                "name": membership.user.display_name,
                "role": membership.role,
            }

    home_users = db.query(User).filter(User.facility_id == facility_id, User.is_active.is_(True)).all()
    for user in home_users:
        if user.id in membership_ids or user.role not in roles:
            continue
        found[user.id] = {"id": user.id, "name": user.display_name, "role": user.role}

    return sorted(found.values(), key=lambda u: u["id"])
