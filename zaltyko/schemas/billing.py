"""
Subscription Billing Schemas (Stripe)
"""
from pydantic import Field
from typing import Any, Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel

PLAN_CODE_PATTERN = "^(free|pro|premium)$"


class CheckoutRequest(APIModel):
    academy_id: str
    plan_code: str = Field(..., pattern=PLAN_CODE_PATTERN)


class CheckoutResponse(APIModel):
    checkout_url: str


class PortalResponse(APIModel):
    url: str


class PlanChangeRequest(APIModel):
    target_plan: str = Field(..., pattern=PLAN_CODE_PATTERN)


class PlanChangeResponse(APIModel):
    success: bool
    message: str
    proration: Optional[dict[str, Any]] = None


class PlanResponse(APIModel):
    id: str
    code: str
    name: str
    price_cents: int
    currency: str
    athlete_limit: Optional[int]
    academy_limit: Optional[int]
    stripe_price_id: Optional[str]
    is_active: bool


class SubscriptionResponse(APIModel):
    plan_code: str
    status: str
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None


class InvoiceResponse(APIModel):
    id: str
    academy_id: str
    stripe_invoice_id: str
    status: str
    amount_due: int
    amount_paid: int
    currency: str
    billing_reason: Optional[str]
    hosted_invoice_url: Optional[str]
    invoice_pdf: Optional[str]
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    created_at: datetime
