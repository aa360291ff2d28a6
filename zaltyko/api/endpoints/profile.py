"""
Profile Endpoints

The caller's own profile and plan usage. These are "flexible" endpoints:
they work for profiles that have no tenant yet.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403
from zaltyko.core.limits import get_remaining_limits, get_upgrade_info, get_user_subscription
from zaltyko.core.tenancy import TenantContext
from zaltyko.core.exceptions import AuthorizationError
from zaltyko.models.academy import Academy
from zaltyko.schemas.user import ProfileResponse, ProfileUpdate
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(context: TenantContext = Depends(get_tenant_context)):
    return context.user


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    user = context.user
    update_data = data.model_dump(exclude_unset=True)

    # The active academy must be one the user can act on
    academy_id = update_data.get("active_academy_id")
    if academy_id:
        academy = db.query(Academy).filter(Academy.id == academy_id).first()
        if not academy or (not user.is_platform_admin and academy.tenant_id != user.tenant_id):
            raise AuthorizationError("Academy access denied", code="ACADEMY_NOT_FOUND_OR_ACCESS_DENIED")

    for field, value in update_data.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)

    logger.info(f"Profile updated: {user.id}", extra={"user_id": user.id})
    return user


@router.get("/subscription")
async def get_my_subscription(
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    info = get_user_subscription(db, context.user_id)
    return {
        "planCode": info.plan_code,
        "status": info.status,
        "limits": {
            "athletes": info.athlete_limit,
            "classes": info.class_limit,
            "groups": info.group_limit,
            "academies": info.academy_limit,
        },
        "upgrade": get_upgrade_info(info.plan_code),
    }


@router.get("/check-limits")
async def check_limits(
    academy_id: str = Query(..., alias="academyId"),
    resource: str = Query(..., pattern="^(athletes|classes|groups)$"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Usage of one limited resource, with upgrade info when exceeded."""
    academy = get_academy_or_403(db, context, academy_id)
    result = get_remaining_limits(db, academy.tenant_id, academy.id, resource)
    result["upgrade"] = get_upgrade_info(result["planCode"]) if result["exceeded"] else None
    return result
