"""
Audit Log Endpoints

Owners see their tenant's entries; super admins see every tenant.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_, String, cast
from datetime import datetime
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import require_roles
from zaltyko.api.scoping import require_tenant
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.audit import AuditLog
from zaltyko.models.user import UserRole
from zaltyko.schemas.audit import AuditLogResponse

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=list[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = None,
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    q: Optional[str] = None,
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    limit: int = Query(50, ge=1, le=200),
    context: TenantContext = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN)),
    db: Session = Depends(get_db)
):
    """
    Newest first.

    q matches the action, the resource id and the serialized meta.
    """
    query = db.query(AuditLog)

    if context.user.role == UserRole.SUPER_ADMIN:
        if tenant_id:
            query = query.filter(AuditLog.tenant_id == tenant_id)
    else:
        query = query.filter(AuditLog.tenant_id == require_tenant(context))

    if action:
        query = query.filter(AuditLog.action == action)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            AuditLog.action.ilike(pattern),
            AuditLog.resource_id.ilike(pattern),
            cast(AuditLog.meta, String).ilike(pattern),
        ))
    if date_from:
        query = query.filter(AuditLog.created_at >= date_from)
    if date_to:
        query = query.filter(AuditLog.created_at <= date_to)

    return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
