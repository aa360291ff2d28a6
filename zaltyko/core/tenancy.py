"""
Tenant Resolution

Works out which tenant a request acts on. The tenant is never taken from
the client directly: it comes from the user's profile, or from an academy
the user is allowed to act on (platform admins and the academy owner).

ARCHITECTURE: TenantMiddleware extracts an academy id hint from the
request, the get_tenant_context dependency (api/deps.py) turns the hint
plus the authenticated profile into a TenantContext.
"""
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
import logging

from zaltyko.models.academy import Academy, Membership
from zaltyko.models.user import User

logger = logging.getLogger(__name__)


PUBLIC_PREFIXES = ("/api/public", "/api/auth", "/api/billing/webhook", "/api/cron")
FLEXIBLE_PREFIXES = ("/api/profile", "/api/billing", "/api/events")


@dataclass
class TenantContext:
    """
    Per-request tenant scope.

    tenant_id may be empty for flexible endpoints (profile, billing, events)
    and for platform admins. Handlers that need a tenant must check it.
    """
    tenant_id: str
    user: User
    academy_id: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_platform_admin(self) -> bool:
        return self.user.is_platform_admin


def is_public_endpoint(path: str) -> bool:
    return path.startswith(PUBLIC_PREFIXES)


def is_academy_creation(method: str, path: str) -> bool:
    return method.upper() == "POST" and path.rstrip("/") == "/api/academies"


def is_flexible_endpoint(path: str) -> bool:
    return path.startswith(FLEXIBLE_PREFIXES)


def is_events_endpoint(path: str) -> bool:
    return path.startswith("/api/events")


def get_tenant_id(db: Session, user: User, academy_id: Optional[str] = None) -> Optional[str]:
    """
    Tenant for a user, optionally in the context of an academy.

    Platform admins and the academy owner act in the academy's tenant.
    Everyone else acts in their own profile tenant.
    """
    if academy_id:
        academy = db.query(Academy).filter(Academy.id == academy_id).first()
        if academy and (user.is_platform_admin or academy.owner_id == user.id):
            return academy.tenant_id
    return user.tenant_id


def resolve_tenant_with_update(db: Session, user: User, academy_id: Optional[str] = None) -> Optional[str]:
    """
    Resolve the tenant and backfill the profile.

    Profiles created before their first academy have no tenant. When such a
    user accesses an academy they own or are a member of, the academy's
    tenant is adopted and written back with the active academy.
    """
    tenant_id = get_tenant_id(db, user, academy_id)
    academy = None

    if academy_id:
        academy = db.query(Academy).filter(Academy.id == academy_id).first()

    if not tenant_id and academy:
        is_member = db.query(Membership).filter(
            Membership.user_id == user.id,
            Membership.academy_id == academy.id
        ).first() is not None
        if is_member or academy.owner_id == user.id:
            tenant_id = academy.tenant_id

    changed = False
    if tenant_id and not user.tenant_id and not user.is_platform_admin:
        user.tenant_id = tenant_id
        changed = True
    if academy and academy.tenant_id == tenant_id and user.active_academy_id != academy.id:
        user.active_academy_id = academy.id
        changed = True

    if changed:
        db.commit()
        logger.info(
            f"Profile {user.id} updated with tenant {tenant_id}",
            extra={"user_id": user.id, "tenant_id": tenant_id, "academy_id": academy_id}
        )

    return tenant_id
