"""
Subscription Billing Endpoints (Stripe)

SECURITY: The webhook is the only unauthenticated route here. It trusts
nothing but a valid Stripe-Signature over the raw body.
"""
from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_current_profile, get_tenant_context
from zaltyko.api.scoping import get_academy_or_403
from zaltyko.core.limits import get_user_subscription
from zaltyko.core.tenancy import TenantContext, get_tenant_id
from zaltyko.models.academy import Academy
from zaltyko.models.billing import BillingInvoice, Plan
from zaltyko.models.user import User
from zaltyko.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PortalResponse,
    PlanChangeRequest,
    PlanChangeResponse,
    PlanResponse,
    SubscriptionResponse,
    InvoiceResponse,
)
from zaltyko.services.audit import log_audit
from zaltyko.services.stripe_checkout import create_checkout_session, create_portal_session
from zaltyko.services.stripe_webhooks import handle_webhook
from zaltyko.services.subscriptions import downgrade_plan, get_user_subscription_row, upgrade_plan
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db)
):
    """
    Stripe event receiver.

    CRITICAL: The body must be read raw; any re-serialization breaks the
    signature check.
    """
    payload = await request.body()
    return handle_webhook(db, payload, stripe_signature)


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout(
    data: CheckoutRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Stripe Checkout URL for moving an academy's owner to a paid plan."""
    if context.is_platform_admin:
        academy = db.query(Academy).filter(Academy.id == data.academy_id).first()
        tenant_id = academy.tenant_id if academy else context.tenant_id
    else:
        tenant_id = get_tenant_id(db, context.user, data.academy_id) or context.tenant_id

    url = create_checkout_session(db, tenant_id, data.academy_id, data.plan_code)
    logger.info(f"Checkout started for academy {data.academy_id} on {data.plan_code}",
                extra={"tenant_id": tenant_id, "user_id": context.user_id})
    return CheckoutResponse(checkout_url=url)


@router.post("/portal", response_model=PortalResponse)
async def portal(
    return_path: str = Query("/billing", alias="returnPath"),
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return PortalResponse(url=create_portal_session(db, user, return_path))


@router.post("/upgrade", response_model=PlanChangeResponse)
async def upgrade(
    data: PlanChangeRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    result = upgrade_plan(db, context.user_id, data.target_plan)
    log_audit(db, context.tenant_id, context.user_id, "billing.plan_upgraded", "subscription", None,
              result["proration"], commit=True)
    return result


@router.post("/downgrade", response_model=PlanChangeResponse)
async def downgrade(
    data: PlanChangeRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    result = downgrade_plan(db, context.user_id, data.target_plan)
    log_audit(db, context.tenant_id, context.user_id, "billing.plan_downgraded", "subscription", None,
              {"targetPlan": data.target_plan}, commit=True)
    return result


@router.get("/subscription", response_model=SubscriptionResponse)
async def current_subscription(
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    info = get_user_subscription(db, user.id)
    row = get_user_subscription_row(db, user.id)
    return SubscriptionResponse(
        plan_code=info.plan_code,
        status=info.status,
        cancel_at_period_end=bool(row.cancel_at_period_end) if row else False,
        current_period_end=row.current_period_end if row else None,
        stripe_customer_id=row.stripe_customer_id if row else None,
    )


@router.get("/invoices", response_model=list[InvoiceResponse])
async def list_invoices(
    academy_id: str = Query(..., alias="academyId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, academy_id)
    return db.query(BillingInvoice).filter(
        BillingInvoice.academy_id == academy.id,
        BillingInvoice.tenant_id == academy.tenant_id
    ).order_by(BillingInvoice.created_at.desc()).all()


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return db.query(Plan).filter(Plan.is_active.is_(True)).order_by(Plan.price_cents).all()
