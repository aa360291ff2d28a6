"""
Row Scoping Helpers

Tenant-filtered lookups shared by the endpoint modules. Platform admins
are not bound to a tenant and skip the tenant filter.
"""
from typing import Optional, Type, TypeVar
from sqlalchemy.orm import Session

from zaltyko.core.exceptions import AuthorizationError, NotFoundError
from zaltyko.core.permissions import ensure_allowed, verify_academy_access
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.academy import Academy

T = TypeVar("T")


def require_tenant(context: TenantContext) -> str:
    """Tenant of the context; 403 TENANT_MISSING when there is none."""
    if not context.tenant_id:
        raise AuthorizationError("No tenant associated with this profile", code="TENANT_MISSING")
    return context.tenant_id


def get_scoped_or_404(db: Session, model: Type[T], row_id: str, context: TenantContext,
                      code: str = "NOT_FOUND") -> T:
    """
    Row by id within the context tenant.

    Rows of other tenants are reported as not found, never as forbidden.
    """
    query = db.query(model).filter(model.id == row_id)
    if not context.is_platform_admin:
        query = query.filter(model.tenant_id == require_tenant(context))
    row = query.first()
    if not row:
        raise NotFoundError(f"{model.__name__} not found", code=code)
    return row


def get_academy_or_403(db: Session, context: TenantContext, academy_id: str) -> Academy:
    """Academy the context may act on, 403 with the access reason otherwise."""
    if context.is_platform_admin:
        academy = db.query(Academy).filter(Academy.id == academy_id).first()
        if not academy:
            raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")
        return academy

    tenant_id = require_tenant(context)
    ensure_allowed(verify_academy_access(db, academy_id, tenant_id), "Academy access denied")
    return db.query(Academy).filter(Academy.id == academy_id).first()


def scoped_tenant_for(context: TenantContext, academy: Optional[Academy]) -> str:
    """Tenant to write new rows under: the academy's, which admins may act on."""
    if academy is not None:
        return academy.tenant_id
    return require_tenant(context)


def paginate(query, page: int, limit: int):
    """(items, total, total_pages) for a query."""
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit if limit else 0
    return items, total, total_pages
