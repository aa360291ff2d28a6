"""
Coach Endpoints
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Coach
from zaltyko.schemas.athlete import CoachCreate, CoachUpdate, CoachResponse

router = APIRouter(prefix="/coaches", tags=["coaches"])


@router.post("", response_model=CoachResponse, status_code=status.HTTP_201_CREATED)
async def create_coach(
    data: CoachCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    coach = Coach(tenant_id=scoped_tenant_for(context, academy), **data.model_dump())
    db.add(coach)
    db.commit()
    db.refresh(coach)
    return coach


@router.get("", response_model=list[CoachResponse])
async def list_coaches(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(Coach).filter(Coach.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(Coach.academy_id == academy_id)
    return query.order_by(Coach.name).all()


@router.get("/{coach_id}", response_model=CoachResponse)
async def get_coach(
    coach_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, Coach, coach_id, context, code="COACH_NOT_FOUND")


@router.patch("/{coach_id}", response_model=CoachResponse)
async def update_coach(
    coach_id: str,
    data: CoachUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    coach = get_scoped_or_404(db, Coach, coach_id, context, code="COACH_NOT_FOUND")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(coach, field, value)
    db.commit()
    db.refresh(coach)
    return coach


@router.delete("/{coach_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coach(
    coach_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    coach = get_scoped_or_404(db, Coach, coach_id, context, code="COACH_NOT_FOUND")
    db.delete(coach)
    db.commit()
    return None
