"""Audit Log Schemas"""
from typing import Any, Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel


class AuditLogResponse(APIModel):
    id: str
    tenant_id: Optional[str]
    user_id: Optional[str]
    action: str
    resource_type: Optional[str]
    resource_id: Optional[str]
    meta: Optional[dict[str, Any]]
    created_at: datetime
