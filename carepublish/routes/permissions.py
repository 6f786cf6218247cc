"""
Permission routes exposing the role catalog and the caller's capabilities.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from .. import permissions
from ..auth import get_required_user
from ..database import get_db
from ..facility import get_current_facility_id
from ..models.user import User
from ..responses import not_found

router = APIRouter(prefix="/api/permissions", tags=["permissions"])


@router.get("/roles/approval", response_model=List[permissions.RoleInfo])
def get_approval_roles():
    """Roles that may approve content."""
    return permissions.get_approval_roles()


@router.get("/me", response_model=permissions.UserPermissions)
def get_my_permissions(
    facility_id: str = Depends(get_current_facility_id),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Capabilities of the current user at their current facility."""
    result = permissions.get_user_permissions(db, current_user.id, facility_id)
    if result is None:
        not_found("Facility role")
    return result
