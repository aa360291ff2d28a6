"""
Charge Endpoints

Amounts are integer cents. Discounts and scholarships are computed in
euros and written back as cents.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, paginate, require_tenant
from zaltyko.core.exceptions import NotFoundError, ValidationError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import BillingItem, Charge, CHARGE_STATUSES
from zaltyko.models.group import GroupAthlete
from zaltyko.schemas.charges import (
    ChargeCreate,
    ChargeUpdate,
    ChargeResponse,
    ChargeListResponse,
    ChargeBulkUpdate,
    GenerateMonthlyRequest,
    GenerateMonthlyResponse,
)
from zaltyko.schemas.common import PERIOD_PATTERN
from zaltyko.services.audit import log_audit
from zaltyko.services.charges import (
    apply_status,
    bulk_update_status,
    generate_monthly_charges,
)
from zaltyko.services.discounts import calculate_discount, apply_discount_to_charge
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/charges", tags=["charges"])


@router.get("", response_model=ChargeListResponse)
async def list_charges(
    academy_id: str = Query(..., alias="academyId"),
    period: Optional[str] = Query(None, pattern=PERIOD_PATTERN),
    athlete_id: Optional[str] = Query(None, alias="athleteId"),
    charge_status: Optional[str] = Query(None, alias="status"),
    group_id: Optional[str] = Query(None, alias="groupId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Charges of an academy.

    status accepts a comma-separated list, e.g. ?status=pending,overdue
    """
    academy = get_academy_or_403(db, context, academy_id)
    query = db.query(Charge).filter(
        Charge.academy_id == academy.id,
        Charge.tenant_id == academy.tenant_id
    )

    if period:
        query = query.filter(Charge.period == period)
    if athlete_id:
        query = query.filter(Charge.athlete_id == athlete_id)
    if charge_status:
        statuses = [s.strip() for s in charge_status.split(",") if s.strip()]
        unknown = [s for s in statuses if s not in CHARGE_STATUSES]
        if unknown:
            raise ValidationError(f"Unknown status: {', '.join(unknown)}", code="INVALID_STATUS")
        query = query.filter(Charge.status.in_(statuses))
    if group_id:
        members = db.query(GroupAthlete.athlete_id).filter(GroupAthlete.group_id == group_id)
        query = query.filter(Charge.athlete_id.in_(members))

    items, total, total_pages = paginate(
        query.order_by(Charge.period.desc(), Charge.created_at.desc()), page, limit
    )
    return ChargeListResponse(
        items=[ChargeResponse.model_validate(c) for c in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.post("", response_model=ChargeResponse, status_code=status.HTTP_201_CREATED)
async def create_charge(
    data: ChargeCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    athlete = db.query(Athlete).filter(
        Athlete.id == data.athlete_id,
        Athlete.academy_id == academy.id,
        Athlete.tenant_id == tenant_id
    ).first()
    if not athlete:
        raise NotFoundError("Athlete not found in this academy", code="ATHLETE_NOT_FOUND")

    label, amount_cents = data.label, data.amount_cents
    if data.billing_item_id:
        item = db.query(BillingItem).filter(
            BillingItem.id == data.billing_item_id,
            BillingItem.academy_id == academy.id
        ).first()
        if not item:
            raise NotFoundError("Billing item not found", code="BILLING_ITEM_NOT_FOUND")
        label = label or item.name
        amount_cents = amount_cents if amount_cents is not None else item.amount_cents

    charge = Charge(
        tenant_id=tenant_id,
        academy_id=academy.id,
        athlete_id=athlete.id,
        billing_item_id=data.billing_item_id,
        class_id=data.class_id,
        label=label,
        amount_cents=amount_cents,
        currency=data.currency,
        period=data.period,
        due_date=data.due_date,
        status="pending",
        payment_method=data.payment_method,
        notes=data.notes,
    )

    discount = calculate_discount(
        db,
        academy.id,
        tenant_id,
        amount_cents / 100,
        discount_code=data.discount_code,
        athlete_id=athlete.id if data.apply_scholarship else None,
    )
    if discount:
        apply_discount_to_charge(db, charge, discount)

    db.add(charge)
    db.flush()

    meta = {"label": charge.label, "amountCents": charge.amount_cents, "period": charge.period}
    if discount:
        meta["discount"] = discount.to_dict()
    log_audit(db, tenant_id, context.user_id, "charge.created", "charge", charge.id, meta)
    db.commit()
    db.refresh(charge)
    return charge


@router.post("/bulk")
async def bulk_update(
    data: ChargeBulkUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Set one status on many charges of the tenant. Unknown ids are ignored."""
    tenant_id = require_tenant(context)

    updated = bulk_update_status(db, tenant_id, data.charge_ids, data.status, data.payment_method)
    log_audit(db, tenant_id, context.user_id, "charge.bulk_updated", "charge", None,
              {"count": updated, "status": data.status}, commit=True)
    return {"success": True, "updated": updated}


@router.post("/generate-monthly", response_model=GenerateMonthlyResponse)
async def generate_monthly(
    data: GenerateMonthlyRequest,
    response: Response,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Create the period's group fee charges. 201 when anything was created."""
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    result = generate_monthly_charges(
        db,
        tenant_id,
        academy.id,
        data.period,
        group_id=data.group_id,
        skip_duplicates=data.skip_duplicates,
    )
    if result.created:
        log_audit(db, tenant_id, context.user_id, "charge.generated_monthly", "academy", academy.id,
                  {"period": data.period, "created": result.created, "skipped": result.skipped},
                  commit=True)

    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return GenerateMonthlyResponse(message=result.message, created=result.created, skipped=result.skipped)


@router.get("/{charge_id}", response_model=ChargeResponse)
async def get_charge(
    charge_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, Charge, charge_id, context, code="CHARGE_NOT_FOUND")


@router.patch("/{charge_id}", response_model=ChargeResponse)
async def update_charge(
    charge_id: str,
    data: ChargeUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    charge = get_scoped_or_404(db, Charge, charge_id, context, code="CHARGE_NOT_FOUND")
    update_data = data.model_dump(exclude_unset=True)
    new_status = update_data.pop("status", None)
    previous_status = charge.status

    for field, value in update_data.items():
        setattr(charge, field, value)
    if new_status:
        apply_status(charge, new_status, update_data.get("payment_method"))

    meta = {"fields": sorted(data.model_dump(exclude_unset=True))}
    if new_status and new_status != previous_status:
        meta["statusFrom"] = previous_status
        meta["statusTo"] = new_status
    log_audit(db, charge.tenant_id, context.user_id, "charge.updated", "charge", charge.id, meta)
    db.commit()
    db.refresh(charge)
    return charge


@router.delete("/{charge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_charge(
    charge_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    charge = get_scoped_or_404(db, Charge, charge_id, context, code="CHARGE_NOT_FOUND")
    log_audit(db, charge.tenant_id, context.user_id, "charge.deleted", "charge", charge.id,
              {"label": charge.label, "amountCents": charge.amount_cents, "period": charge.period})
    db.delete(charge)
    db.commit()
    return None
