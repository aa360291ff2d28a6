"""
Discount and Scholarship Endpoints

A discount is a code any charge can use; a scholarship is a standing
reduction for one athlete.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.exceptions import ConflictError, NotFoundError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Discount, Scholarship
from zaltyko.schemas.charges import (
    DiscountCreate,
    DiscountUpdate,
    DiscountResponse,
    DiscountPreviewRequest,
    ScholarshipCreate,
    ScholarshipUpdate,
    ScholarshipResponse,
)
from zaltyko.services.discounts import calculate_discount

router = APIRouter(prefix="/discounts", tags=["discounts"])
scholarships_router = APIRouter(prefix="/scholarships", tags=["scholarships"])


@router.post("", response_model=DiscountResponse, status_code=status.HTTP_201_CREATED)
async def create_discount(
    data: DiscountCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)

    if data.code:
        taken = db.query(Discount.id).filter(
            Discount.academy_id == academy.id,
            Discount.code == data.code,
            Discount.is_active.is_(True)
        ).first()
        if taken:
            raise ConflictError("An active discount already uses this code", code="DISCOUNT_CODE_TAKEN")

    discount = Discount(tenant_id=scoped_tenant_for(context, academy), current_uses=0, **data.model_dump())
    db.add(discount)
    db.commit()
    db.refresh(discount)
    return discount


@router.get("", response_model=list[DiscountResponse])
async def list_discounts(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(Discount).filter(Discount.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(Discount.academy_id == academy_id)
    return query.order_by(Discount.created_at.desc()).all()


@router.post("/preview")
async def preview_discount(
    data: DiscountPreviewRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """What a code or scholarship would take off an amount, without using it."""
    academy = get_academy_or_403(db, context, data.academy_id)
    result = calculate_discount(
        db,
        academy.id,
        academy.tenant_id,
        data.amount,
        discount_code=data.discount_code,
        athlete_id=data.athlete_id,
    )
    if not result:
        return {"applied": False, "finalAmount": round(data.amount, 2)}
    return {"applied": True, **result.to_dict()}


@router.patch("/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: str,
    data: DiscountUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    discount = get_scoped_or_404(db, Discount, discount_id, context, code="DISCOUNT_NOT_FOUND")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(discount, field, value)
    db.commit()
    db.refresh(discount)
    return discount


@router.delete("/{discount_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_discount(
    discount_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    discount = get_scoped_or_404(db, Discount, discount_id, context, code="DISCOUNT_NOT_FOUND")
    db.delete(discount)
    db.commit()
    return None


@scholarships_router.post("", response_model=ScholarshipResponse, status_code=status.HTTP_201_CREATED)
async def create_scholarship(
    data: ScholarshipCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    athlete = db.query(Athlete.id).filter(
        Athlete.id == data.athlete_id,
        Athlete.academy_id == academy.id
    ).first()
    if not athlete:
        raise NotFoundError("Athlete not found in this academy", code="ATHLETE_NOT_FOUND")

    scholarship = Scholarship(tenant_id=scoped_tenant_for(context, academy), **data.model_dump())
    db.add(scholarship)
    db.commit()
    db.refresh(scholarship)
    return scholarship


@scholarships_router.get("", response_model=list[ScholarshipResponse])
async def list_scholarships(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    athlete_id: Optional[str] = Query(None, alias="athleteId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(Scholarship).filter(Scholarship.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(Scholarship.academy_id == academy_id)
    if athlete_id:
        query = query.filter(Scholarship.athlete_id == athlete_id)
    return query.order_by(Scholarship.created_at.desc()).all()


@scholarships_router.patch("/{scholarship_id}", response_model=ScholarshipResponse)
async def update_scholarship(
    scholarship_id: str,
    data: ScholarshipUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    scholarship = get_scoped_or_404(db, Scholarship, scholarship_id, context, code="SCHOLARSHIP_NOT_FOUND")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(scholarship, field, value)
    db.commit()
    db.refresh(scholarship)
    return scholarship


@scholarships_router.delete("/{scholarship_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scholarship(
    scholarship_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    scholarship = get_scoped_or_404(db, Scholarship, scholarship_id, context, code="SCHOLARSHIP_NOT_FOUND")
    db.delete(scholarship)
    db.commit()
    return None
