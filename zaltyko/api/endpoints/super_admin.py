"""
Super Admin Endpoints

Platform-wide views with no tenant filter.

SECURITY: Every route depends on require_super_admin. Changes are audited
under the affected tenant.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_
from datetime import datetime
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import require_super_admin
from zaltyko.api.scoping import paginate
from zaltyko.core.exceptions import NotFoundError, ValidationError
from zaltyko.models.academy import Academy
from zaltyko.models.user import User, UserRole
from zaltyko.schemas.academy import AcademyResponse
from zaltyko.schemas.user import AdminUserUpdate, ProfileListResponse, ProfileResponse
from zaltyko.services.audit import log_audit
from zaltyko.services.plan_sync import sync_plans_from_stripe
from zaltyko.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

router = APIRouter(prefix="/super-admin", tags=["super-admin"])


@router.get("/academies", response_model=list[AcademyResponse])
async def list_all_academies(
    search: Optional[str] = Query(None, alias="q"),
    suspended: Optional[bool] = None,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    query = db.query(Academy)
    if search and search.strip():
        query = query.filter(Academy.name.ilike(f"%{search.strip()}%"))
    if suspended is not None:
        query = query.filter(Academy.is_suspended.is_(suspended))
    return query.order_by(Academy.created_at.desc()).all()


def _set_suspended(db: Session, admin: User, academy_id: str, suspended: bool) -> Academy:
    academy = db.query(Academy).filter(Academy.id == academy_id).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")

    academy.is_suspended = suspended
    academy.suspended_at = datetime.utcnow() if suspended else None
    log_audit(db, academy.tenant_id, admin.id,
              "academy.suspended" if suspended else "academy.unsuspended",
              "academy", academy.id)
    db.commit()
    db.refresh(academy)

    log_security_event(
        "academy_suspended" if suspended else "academy_unsuspended",
        {"academy_id": academy.id, "tenant_id": academy.tenant_id, "admin_id": admin.id},
        logger
    )
    return academy


@router.post("/academies/{academy_id}/suspend", response_model=AcademyResponse)
async def suspend_academy(
    academy_id: str,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    return _set_suspended(db, admin, academy_id, True)


@router.post("/academies/{academy_id}/unsuspend", response_model=AcademyResponse)
async def unsuspend_academy(
    academy_id: str,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    return _set_suspended(db, admin, academy_id, False)


@router.get("/users", response_model=ProfileListResponse)
async def list_users(
    search: Optional[str] = Query(None, alias="q"),
    role: Optional[UserRole] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    query = db.query(User)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)

    items, total, _ = paginate(query.order_by(User.created_at.desc()), page, page_size)
    return ProfileListResponse(
        items=[ProfileResponse.model_validate(u) for u in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.patch("/users/{user_id}", response_model=ProfileResponse)
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    """
    Toggle login, activation or change role.

    A super admin cannot lock themselves out.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("Profile not found", code="PROFILE_NOT_FOUND")

    update_data = data.model_dump(exclude_unset=True)
    if user.id == admin.id and (
        update_data.get("can_login") is False
        or update_data.get("is_active") is False
        or ("role" in update_data and update_data["role"] != UserRole.SUPER_ADMIN)
    ):
        raise ValidationError("You cannot lock yourself out", code="SELF_LOCKOUT")

    for field, value in update_data.items():
        setattr(user, field, value)

    log_audit(db, user.tenant_id, admin.id, "profile.admin_updated", "profile", user.id,
              {k: (v.value if isinstance(v, UserRole) else v) for k, v in update_data.items()})
    db.commit()
    db.refresh(user)

    log_security_event("profile_admin_updated", {"user_id": user.id, "admin_id": admin.id,
                                                 "fields": sorted(update_data)}, logger)
    return user


@router.post("/plans/sync")
async def sync_plans(
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    """Refresh the plan catalogue from active Stripe prices."""
    result = sync_plans_from_stripe(db)
    logger.info(f"Plan sync by {admin.id}: {result}")
    return result
