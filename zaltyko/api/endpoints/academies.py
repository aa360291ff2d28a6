"""
Academy Endpoints

Creating the first academy is what gives an owner a tenant. Later
academies of the same owner join that tenant.

RBAC:
- Create: owner, admin, super_admin (subject to the owner's academy limit)
- List/view: anyone in the tenant
- Update/delete: owner, admin, super_admin
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import uuid

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context, require_roles
from zaltyko.api.scoping import get_scoped_or_404
from zaltyko.core.exceptions import AuthorizationError, NotFoundError
from zaltyko.core.limits import assert_user_academy_limit
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.academy import Academy, Membership
from zaltyko.models.user import User, UserRole
from zaltyko.schemas.academy import AcademyCreate, AcademyResponse, AcademyUpdate
from zaltyko.services.audit import log_audit
from zaltyko.services.subscriptions import ensure_free_subscription
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/academies", tags=["academies"])

MANAGER_ROLES = (UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN)


@router.post("", response_model=AcademyResponse, status_code=status.HTTP_201_CREATED)
async def create_academy(
    data: AcademyCreate,
    context: TenantContext = Depends(require_roles(*MANAGER_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Create an academy.

    Tenant selection:
    1. tenantId from the body, platform admins only
    2. the owner's existing tenant
    3. a brand new tenant id
    """
    requester = context.user
    owner = requester

    if data.owner_profile_id and data.owner_profile_id != requester.id:
        if not requester.is_platform_admin:
            raise AuthorizationError("Only admins can create academies for others",
                                     code="INSUFFICIENT_PERMISSIONS")
        owner = db.query(User).filter(User.id == data.owner_profile_id).first()
        if not owner:
            raise NotFoundError("Owner profile not found", code="PROFILE_NOT_FOUND")
        if owner.role not in (UserRole.OWNER, UserRole.ADMIN):
            raise AuthorizationError("Target profile cannot own academies", code="INVALID_OWNER_ROLE")

    assert_user_academy_limit(db, owner.id)

    if data.tenant_id and requester.is_platform_admin:
        tenant_id = data.tenant_id
    elif owner.tenant_id:
        tenant_id = owner.tenant_id
    else:
        tenant_id = str(uuid.uuid4())

    academy = Academy(
        tenant_id=tenant_id,
        owner_id=owner.id,
        **data.model_dump(exclude={"tenant_id", "owner_profile_id"}),
    )
    db.add(academy)
    db.flush()

    db.add(Membership(user_id=owner.id, academy_id=academy.id, role="owner"))

    if not owner.tenant_id:
        owner.tenant_id = tenant_id
    owner.active_academy_id = academy.id

    ensure_free_subscription(db, owner.id)
    log_audit(db, tenant_id, requester.id, "academy.created", "academy", academy.id,
              {"name": academy.name, "ownerId": owner.id})
    db.commit()
    db.refresh(academy)

    logger.info(f"Academy created: {academy.id} by {requester.id}",
                extra={"tenant_id": tenant_id, "user_id": requester.id})
    return academy


@router.get("", response_model=list[AcademyResponse])
async def list_academies(
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    academy_type: Optional[str] = Query(None, alias="academyType"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Academies of the caller's tenant.

    Super admins see every academy, or one tenant with ?tenantId=.
    """
    query = db.query(Academy)

    if context.user.role == UserRole.SUPER_ADMIN:
        if tenant_id:
            query = query.filter(Academy.tenant_id == tenant_id)
    else:
        if not context.tenant_id:
            return []
        query = query.filter(Academy.tenant_id == context.tenant_id)

    if academy_type:
        query = query.filter(Academy.academy_type == academy_type)

    return query.order_by(Academy.name).all()


@router.get("/{academy_id}", response_model=AcademyResponse)
async def get_academy(
    academy_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, Academy, academy_id, context, code="ACADEMY_NOT_FOUND")


@router.patch("/{academy_id}", response_model=AcademyResponse)
async def update_academy(
    academy_id: str,
    data: AcademyUpdate,
    context: TenantContext = Depends(require_roles(*MANAGER_ROLES)),
    db: Session = Depends(get_db)
):
    academy = get_scoped_or_404(db, Academy, academy_id, context, code="ACADEMY_NOT_FOUND")
    _ensure_owner_or_admin(context, academy)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(academy, field, value)

    log_audit(db, academy.tenant_id, context.user_id, "academy.updated", "academy", academy.id,
              {"fields": sorted(update_data)})
    db.commit()
    db.refresh(academy)
    return academy


@router.delete("/{academy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_academy(
    academy_id: str,
    context: TenantContext = Depends(require_roles(*MANAGER_ROLES)),
    db: Session = Depends(get_db)
):
    """Hard delete; every academy-owned row cascades."""
    academy = get_scoped_or_404(db, Academy, academy_id, context, code="ACADEMY_NOT_FOUND")
    _ensure_owner_or_admin(context, academy)

    log_audit(db, academy.tenant_id, context.user_id, "academy.deleted", "academy", academy.id,
              {"name": academy.name})
    db.delete(academy)

    if context.user.active_academy_id == academy_id:
        context.user.active_academy_id = None
    db.commit()

    logger.info(f"Academy deleted: {academy_id} by {context.user_id}",
                extra={"tenant_id": academy.tenant_id})
    return None


def _ensure_owner_or_admin(context: TenantContext, academy: Academy) -> None:
    if context.is_platform_admin:
        return
    if academy.owner_id != context.user_id:
        raise AuthorizationError("Only the academy owner can do this", code="INSUFFICIENT_PERMISSIONS")
