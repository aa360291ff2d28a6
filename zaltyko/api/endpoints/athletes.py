"""
Athlete Endpoints

SECURITY: Every query filters on the context tenant; athletes of other
tenants are reported as not found.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.exceptions import NotFoundError
from zaltyko.core.limits import assert_within_plan_limits, get_active_subscription, count_resource
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.schemas.athlete import (
    AthleteCreate,
    AthleteUpdate,
    AthleteResponse,
    AthleteListResponse,
    AthleteImportRequest,
    AthleteImportResponse,
)
from zaltyko.services.athletes_csv import parse_athletes_csv, template_csv, export_athletes_csv
from zaltyko.services.audit import log_audit
from zaltyko.services.charges import sync_charges_for_athlete_current_period
from zaltyko.services.reports import athlete_attendance_report
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/athletes", tags=["athletes"])


def _group_in_academy(db: Session, group_id: str, academy_id: str) -> Group:
    group = db.query(Group).filter(Group.id == group_id, Group.academy_id == academy_id).first()
    if not group:
        raise NotFoundError("Group not found in this academy", code="GROUP_NOT_FOUND")
    return group


def _set_primary_group(db: Session, athlete: Athlete, group_id: Optional[str]) -> None:
    """Keep the GroupAthlete roster in step with athlete.group_id."""
    if athlete.group_id and athlete.group_id != group_id:
        db.query(GroupAthlete).filter(
            GroupAthlete.group_id == athlete.group_id,
            GroupAthlete.athlete_id == athlete.id
        ).delete(synchronize_session=False)

    athlete.group_id = group_id
    if group_id:
        exists = db.query(GroupAthlete).filter(
            GroupAthlete.group_id == group_id,
            GroupAthlete.athlete_id == athlete.id
        ).first()
        if not exists:
            db.add(GroupAthlete(tenant_id=athlete.tenant_id, group_id=group_id, athlete_id=athlete.id))


@router.post("", response_model=AthleteResponse, status_code=status.HTTP_201_CREATED)
async def create_athlete(
    data: AthleteCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    assert_within_plan_limits(db, tenant_id, academy.id, "athletes")

    if data.group_id:
        _group_in_academy(db, data.group_id, academy.id)

    athlete = Athlete(
        tenant_id=tenant_id,
        **data.model_dump(exclude={"group_id"}),
    )
    db.add(athlete)
    db.flush()
    _set_primary_group(db, athlete, data.group_id)

    log_audit(db, tenant_id, context.user_id, "athlete.created", "athlete", athlete.id,
              {"name": athlete.name, "academyId": academy.id})
    db.commit()
    db.refresh(athlete)

    logger.info(f"Athlete created: {athlete.id}", extra={"tenant_id": tenant_id, "academy_id": academy.id})
    return athlete


@router.get("", response_model=AthleteListResponse)
async def list_athletes(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    group_id: Optional[str] = Query(None, alias="groupId"),
    athlete_status: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None, alias="q"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Athletes of the tenant.

    PERFORMANCE NOTE: Paginated; search is a case-insensitive match on
    name and email.
    """
    tenant_id = require_tenant(context)
    query = db.query(Athlete).filter(Athlete.tenant_id == tenant_id)

    if academy_id:
        query = query.filter(Athlete.academy_id == academy_id)
    if group_id:
        query = query.join(GroupAthlete, GroupAthlete.athlete_id == Athlete.id).filter(
            GroupAthlete.group_id == group_id
        )
    if athlete_status:
        query = query.filter(Athlete.status == athlete_status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Athlete.name.ilike(pattern), Athlete.email.ilike(pattern)))

    total = query.count()
    items = query.order_by(Athlete.name).offset((page - 1) * limit).limit(limit).all()
    return AthleteListResponse(
        items=[AthleteResponse.model_validate(a) for a in items],
        total=total, page=page, limit=limit,
    )


@router.get("/export")
async def export_athletes(
    academy_id: str = Query(..., alias="academyId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, academy_id)
    rows = db.query(Athlete, Group.name).outerjoin(Group, Group.id == Athlete.group_id).filter(
        Athlete.academy_id == academy.id,
        Athlete.tenant_id == academy.tenant_id
    ).order_by(Athlete.name).all()

    content = export_athletes_csv(
        {
            "name": athlete.name,
            "email": athlete.email,
            "birth_date": athlete.birth_date,
            "level": athlete.level,
            "status": athlete.status,
            "group": group_name,
        }
        for athlete, group_name in rows
    )
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="atletas-{academy.id}.csv"'},
    )


@router.get("/import/template")
async def import_template(context: TenantContext = Depends(get_tenant_context)):
    return Response(
        content=template_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="plantilla-atletas.csv"'},
    )


@router.post("/import", response_model=AthleteImportResponse)
async def import_athletes(
    data: AthleteImportRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Import athletes from CSV text.

    Rows beyond the plan's remaining athlete capacity are skipped, never
    partially rejected with a 402.
    """
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    parsed = parse_athletes_csv(data.csv)

    info = get_active_subscription(db, academy.id)
    current = count_resource(db, tenant_id, academy.id, "athletes")
    remaining = None if info.athlete_limit is None else max(0, info.athlete_limit - current)

    groups_by_name = {
        g.name.strip().lower(): g.id
        for g in db.query(Group).filter(Group.academy_id == academy.id, Group.tenant_id == tenant_id).all()
    }

    errors = list(parsed.errors)
    created = 0
    skipped = 0

    for row in parsed.data:
        if remaining is not None and created >= remaining:
            skipped += 1
            continue

        group_id = None
        if row.group_name:
            group_id = groups_by_name.get(row.group_name.strip().lower())
            if not group_id:
                errors.append(f"{row.name}: grupo '{row.group_name}' no encontrado, importado sin grupo")

        athlete = Athlete(
            tenant_id=tenant_id,
            academy_id=academy.id,
            name=row.name,
            email=row.email,
            birth_date=row.birth_date,
            level=row.level,
            status="active",
        )
        db.add(athlete)
        db.flush()
        _set_primary_group(db, athlete, group_id)
        created += 1

    if skipped:
        errors.append(f"{skipped} atletas no importados: límite del plan alcanzado")

    log_audit(db, tenant_id, context.user_id, "athlete.imported", "academy", academy.id,
              {"created": created, "skipped": skipped})
    db.commit()

    logger.info(
        f"Athlete import: {created} created, {skipped} skipped, {len(parsed.errors)} invalid",
        extra={"tenant_id": tenant_id, "academy_id": academy.id}
    )
    return AthleteImportResponse(created=created, skipped=skipped,
                                 total_rows=parsed.total_rows, errors=errors)


@router.get("/{athlete_id}", response_model=AthleteResponse)
async def get_athlete(
    athlete_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")


@router.get("/{athlete_id}/history")
async def athlete_history(
    athlete_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Attendance summary and charges of one athlete."""
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    charges = db.query(Charge).filter(
        Charge.athlete_id == athlete.id,
        Charge.tenant_id == athlete.tenant_id
    ).order_by(Charge.period.desc(), Charge.created_at.desc()).all()

    return {
        "athleteId": athlete.id,
        "attendance": athlete_attendance_report(db, athlete.tenant_id, athlete.id),
        "charges": [
            {
                "id": c.id,
                "label": c.label,
                "amountCents": c.amount_cents,
                "currency": c.currency,
                "period": c.period,
                "status": c.status,
                "dueDate": c.due_date.isoformat() if c.due_date else None,
                "paidAt": c.paid_at.isoformat() if c.paid_at else None,
            }
            for c in charges
        ],
    }


@router.patch("/{athlete_id}", response_model=AthleteResponse)
async def update_athlete(
    athlete_id: str,
    data: AthleteUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    update_data = data.model_dump(exclude_unset=True)

    group_changed = "group_id" in update_data and update_data["group_id"] != athlete.group_id
    new_group_id = update_data.pop("group_id", athlete.group_id)
    if group_changed and new_group_id:
        _group_in_academy(db, new_group_id, athlete.academy_id)

    for field, value in update_data.items():
        setattr(athlete, field, value)
    if group_changed:
        _set_primary_group(db, athlete, new_group_id)

    log_audit(db, athlete.tenant_id, context.user_id, "athlete.updated", "athlete", athlete.id,
              {"fields": sorted(data.model_dump(exclude_unset=True))})
    db.commit()

    if group_changed and new_group_id:
        updated = sync_charges_for_athlete_current_period(db, athlete.academy_id, athlete.id, new_group_id)
        if updated:
            logger.info(f"Repriced {updated} open charges for athlete {athlete.id}",
                        extra={"tenant_id": athlete.tenant_id})

    db.refresh(athlete)
    return athlete


@router.delete("/{athlete_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_athlete(
    athlete_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    log_audit(db, athlete.tenant_id, context.user_id, "athlete.deleted", "athlete", athlete.id,
              {"name": athlete.name})
    db.delete(athlete)
    db.commit()
    return None
