"""Audit log writer."""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from zaltyko.models.audit import AuditLog


def log_audit(
    db: Session,
    tenant_id: Optional[str],
    user_id: Optional[str],
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    commit: bool = False,
) -> AuditLog:
    """
    Add an audit entry to the session.

    Callers normally commit it together with the change it describes.
    """
    entry = AuditLog(
        tenant_id=tenant_id or None,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        meta=meta,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry
