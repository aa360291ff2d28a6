"""
Billing Item Endpoints

Reusable price list entries (monthly fee, registration, equipment) that
prefill new charges.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.charges import BillingItem
from zaltyko.schemas.charges import BillingItemCreate, BillingItemUpdate, BillingItemResponse

router = APIRouter(prefix="/billing-items", tags=["billing-items"])


@router.post("", response_model=BillingItemResponse, status_code=status.HTTP_201_CREATED)
async def create_billing_item(
    data: BillingItemCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    item = BillingItem(tenant_id=scoped_tenant_for(context, academy), **data.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@router.get("", response_model=list[BillingItemResponse])
async def list_billing_items(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    active_only: bool = Query(False, alias="activeOnly"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(BillingItem).filter(BillingItem.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(BillingItem.academy_id == academy_id)
    if active_only:
        query = query.filter(BillingItem.is_active.is_(True))
    return query.order_by(BillingItem.name).all()


@router.patch("/{item_id}", response_model=BillingItemResponse)
async def update_billing_item(
    item_id: str,
    data: BillingItemUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    item = get_scoped_or_404(db, BillingItem, item_id, context, code="BILLING_ITEM_NOT_FOUND")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_billing_item(
    item_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    item = get_scoped_or_404(db, BillingItem, item_id, context, code="BILLING_ITEM_NOT_FOUND")
    db.delete(item)
    db.commit()
    return None
