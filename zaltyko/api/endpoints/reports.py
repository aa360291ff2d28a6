"""
Report and Dashboard Endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404
from zaltyko.core.exceptions import ValidationError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.group import Group
from zaltyko.schemas.common import PERIOD_PATTERN
from zaltyko.services.reports import athlete_attendance_report, group_attendance_report, financial_metrics

router = APIRouter(prefix="/reports", tags=["reports"])
dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/attendance")
async def attendance_report(
    athlete_id: Optional[str] = Query(None, alias="athleteId"),
    group_id: Optional[str] = Query(None, alias="groupId"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Attendance of one athlete, or of every athlete in a group."""
    if athlete_id:
        athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
        return athlete_attendance_report(db, athlete.tenant_id, athlete.id, date_from, date_to)
    if group_id:
        group = get_scoped_or_404(db, Group, group_id, context, code="GROUP_NOT_FOUND")
        return group_attendance_report(db, group.tenant_id, group.id, date_from, date_to)
    raise ValidationError("athleteId or groupId is required", code="MISSING_FILTER")


@dashboard_router.get("/{academy_id}/financial-metrics")
async def academy_financial_metrics(
    academy_id: str,
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, academy_id)
    return financial_metrics(db, academy.tenant_id, academy.id, period)
