"""
Resource Access Checks

Every check returns a PermissionCheck instead of raising, so callers can
combine checks. ensure_allowed() turns a denied check into a 403 carrying
the reason code.

RULE: A row is accessible only if its tenant_id matches the context tenant,
and its academy_id matches when the caller scopes to an academy.
"""
from typing import NamedTuple, Optional, Sequence
from sqlalchemy.orm import Session

from zaltyko.core.exceptions import AuthorizationError
from zaltyko.models.academy import Academy
from zaltyko.models.athlete import Athlete
from zaltyko.models.group import Group
from zaltyko.models.schedule import AcademyClass
from zaltyko.models.user import User, UserRole, PLATFORM_ROLES


class PermissionCheck(NamedTuple):
    allowed: bool
    reason: Optional[str] = None


ALLOWED = PermissionCheck(True)


def verify_academy_access(db: Session, academy_id: str, tenant_id: str) -> PermissionCheck:
    academy = db.query(Academy).filter(
        Academy.id == academy_id,
        Academy.tenant_id == tenant_id
    ).first()
    if not academy:
        return PermissionCheck(False, "ACADEMY_NOT_FOUND_OR_ACCESS_DENIED")
    return ALLOWED


def _verify_scoped(db: Session, model, kind: str, row_id: str, tenant_id: str,
                   academy_id: Optional[str]) -> PermissionCheck:
    query = db.query(model).filter(model.id == row_id, model.tenant_id == tenant_id)
    if academy_id:
        query = query.filter(model.academy_id == academy_id)
    if not query.first():
        return PermissionCheck(False, f"{kind}_NOT_FOUND_OR_ACCESS_DENIED")
    return ALLOWED


def verify_athlete_access(db: Session, athlete_id: str, tenant_id: str,
                          academy_id: Optional[str] = None) -> PermissionCheck:
    return _verify_scoped(db, Athlete, "ATHLETE", athlete_id, tenant_id, academy_id)


def verify_class_access(db: Session, class_id: str, tenant_id: str,
                        academy_id: Optional[str] = None) -> PermissionCheck:
    return _verify_scoped(db, AcademyClass, "CLASS", class_id, tenant_id, academy_id)


def verify_group_access(db: Session, group_id: str, tenant_id: str,
                        academy_id: Optional[str] = None) -> PermissionCheck:
    return _verify_scoped(db, Group, "GROUP", group_id, tenant_id, academy_id)


def verify_role_permission(user: User, allowed_roles: Sequence[UserRole]) -> PermissionCheck:
    if user.role not in allowed_roles:
        return PermissionCheck(False, "INSUFFICIENT_PERMISSIONS")
    return ALLOWED


def verify_resource_access(
    db: Session,
    user: User,
    tenant_id: str,
    resource_type: str,
    resource_id: str,
    academy_id: Optional[str] = None,
) -> PermissionCheck:
    """
    Generic entry point used by handlers that get the resource type at runtime.

    Platform admins pass. A profile bound to another tenant fails before any
    lookup happens.
    """
    if user.role in PLATFORM_ROLES:
        return ALLOWED

    if user.tenant_id and user.tenant_id != tenant_id:
        return PermissionCheck(False, "TENANT_MISMATCH")

    if resource_type == "academy":
        return verify_academy_access(db, resource_id, tenant_id)
    if resource_type == "athlete":
        return verify_athlete_access(db, resource_id, tenant_id, academy_id)
    if resource_type == "class":
        return verify_class_access(db, resource_id, tenant_id, academy_id)
    if resource_type == "group":
        return verify_group_access(db, resource_id, tenant_id, academy_id)

    return PermissionCheck(False, "UNKNOWN_RESOURCE_TYPE")


def ensure_allowed(check: PermissionCheck, message: str = "Access denied") -> None:
    """Raise a 403 carrying the check's reason when it was denied."""
    if not check.allowed:
        raise AuthorizationError(message, code=check.reason)


def require_roles(user: User, *roles: UserRole) -> None:
    """Raise INSUFFICIENT_PERMISSIONS unless the user has one of roles."""
    ensure_allowed(verify_role_permission(user, roles), "This action requires a different role")
