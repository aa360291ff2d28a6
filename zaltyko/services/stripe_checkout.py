"""
Stripe Checkout and Customer Portal

Subscriptions are paid by the academy owner; the Stripe customer is
stored on the owner's subscription row.
"""
from typing import Optional
from sqlalchemy.orm import Session

from zaltyko.config import get_settings
from zaltyko.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from zaltyko.models.academy import Academy
from zaltyko.models.billing import PlanCode, Subscription
from zaltyko.models.user import User
from zaltyko.services.plans import get_plan_by_code
from zaltyko.services.stripe_client import get_stripe
from zaltyko.utils.logging import get_logger, log_external_service

logger = get_logger(__name__)


def get_or_create_stripe_customer(db: Session, user: User) -> str:
    """
    Stripe customer id of a user, creating the customer on first checkout.

    A user without a subscription row gets one on the free plan with
    status "incomplete" until Stripe confirms the subscription.
    """
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if subscription and subscription.stripe_customer_id:
        return subscription.stripe_customer_id

    stripe = get_stripe()
    customer = stripe.Customer.create(
        email=user.email,
        name=user.name or None,
        metadata={"userId": user.id},
    )
    log_external_service("stripe", "customer.create", logger, user_id=user.id)

    if not subscription:
        free_plan = get_plan_by_code(db, PlanCode.FREE.value)
        subscription = Subscription(
            user_id=user.id,
            plan_id=free_plan.id if free_plan else None,
            status="incomplete",
        )
        db.add(subscription)

    subscription.stripe_customer_id = customer["id"]
    db.commit()
    return customer["id"]


def create_checkout_session(db: Session, tenant_id: str, academy_id: str, plan_code: str) -> str:
    """Checkout URL for moving an academy's owner to plan_code."""
    academy = db.query(Academy).filter(Academy.id == academy_id).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")
    if academy.tenant_id != tenant_id:
        raise AuthorizationError("Academy belongs to another tenant", code="ACADEMY_TENANT_MISMATCH")

    plan = get_plan_by_code(db, plan_code)
    if not plan:
        raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND")
    if not plan.stripe_price_id:
        raise ValidationError("Plan has no Stripe price", code="PLAN_PRICE_NOT_CONFIGURED")

    if not academy.owner_id or not academy.owner:
        raise ValidationError("Academy has no owner", code="ACADEMY_HAS_NO_OWNER")

    owner = academy.owner
    customer_id = get_or_create_stripe_customer(db, owner)
    metadata = {"userId": owner.id, "tenantId": tenant_id, "planCode": plan.code}
    app_url = get_settings().APP_URL

    session = get_stripe().checkout.Session.create(
        mode="subscription",
        customer=customer_id,
        line_items=[{"price": plan.stripe_price_id, "quantity": 1}],
        success_url=f"{app_url}/billing/success?academy={academy.id}",
        cancel_url=f"{app_url}/billing",
        metadata=metadata,
        subscription_data={"metadata": metadata},
    )
    log_external_service(
        "stripe", "checkout.create", logger,
        tenant_id=tenant_id, academy_id=academy.id, user_id=owner.id
    )
    return session["url"]


def create_portal_session(db: Session, user: User, return_path: Optional[str] = "/billing") -> str:
    subscription = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    if not subscription or not subscription.stripe_customer_id:
        raise NotFoundError("No Stripe customer for this account", code="NO_STRIPE_CUSTOMER")

    session = get_stripe().billing_portal.Session.create(
        customer=subscription.stripe_customer_id,
        return_url=f"{get_settings().APP_URL}{return_path}",
    )
    log_external_service("stripe", "portal.create", logger, user_id=user.id)
    return session["url"]
