"""
Plan Changes

Upgrades and downgrades issued from the billing page. Stripe remains the
source of truth for paid subscriptions; webhook events overwrite whatever
is set here once Stripe confirms.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from zaltyko.core.exceptions import ConflictError, NotFoundError
from zaltyko.core.limits import check_plan_limit_violations
from zaltyko.models.billing import Plan, PlanCode, Subscription
from zaltyko.services.plans import ensure_default_plans, get_plan_by_code
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

BILLING_CYCLE_DAYS = 30

# Monthly list prices in euros, used when a plan row has no Stripe price yet
PLAN_PRICES_EUR = {"free": 0.0, "pro": 19.0, "premium": 49.0}


def plan_monthly_price(db: Session, plan_code: str) -> float:
    plan = get_plan_by_code(db, plan_code)
    if plan and plan.price_cents:
        return plan.price_cents / 100
    return PLAN_PRICES_EUR.get(plan_code, 0.0)


def calculate_proration(
    current_price: float,
    target_price: float,
    now: datetime,
    cycle_end: datetime,
    cycle_days: int = BILLING_CYCLE_DAYS,
) -> Dict[str, Any]:
    """
    Amount due now when changing plan mid-cycle.

    The price difference is charged for the unused fraction of the cycle.
    A negative amount is a credit.
    """
    remaining_seconds = max(0.0, (cycle_end - now).total_seconds())
    days_remaining = min(cycle_days, int(remaining_seconds // 86400))
    fraction = days_remaining / cycle_days if cycle_days else 0
    amount = round((target_price - current_price) * fraction, 2)
    return {
        "daysRemaining": days_remaining,
        "cycleDays": cycle_days,
        "amount": amount,
        "currency": "EUR",
    }


def get_user_subscription_row(db: Session, user_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def ensure_free_subscription(db: Session, user_id: str) -> Subscription:
    """Subscription row for a user, created on the free plan when missing."""
    subscription = get_user_subscription_row(db, user_id)
    if subscription:
        return subscription
    free_plan = get_plan_by_code(db, PlanCode.FREE.value)
    if not free_plan:
        ensure_default_plans(db)
        free_plan = get_plan_by_code(db, PlanCode.FREE.value)
    subscription = Subscription(user_id=user_id, plan_id=free_plan.id, status="active")
    db.add(subscription)
    return subscription


def upgrade_plan(db: Session, user_id: str, target_plan: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    plan = get_plan_by_code(db, target_plan)
    if not plan:
        raise NotFoundError("Target plan not found", code="PLAN_NOT_FOUND")

    subscription = get_user_subscription_row(db, user_id)
    current_code = PlanCode.FREE.value
    if subscription:
        current_plan = db.query(Plan).filter(Plan.id == subscription.plan_id).first()
        if current_plan:
            current_code = current_plan.code

    cycle_end = (
        subscription.current_period_end
        if subscription and subscription.current_period_end
        else now + timedelta(days=BILLING_CYCLE_DAYS)
    )
    proration = calculate_proration(
        plan_monthly_price(db, current_code),
        plan_monthly_price(db, target_plan),
        now,
        cycle_end,
    )
    proration.update({"fromPlan": current_code, "toPlan": target_plan})

    if subscription:
        subscription.plan_id = plan.id
        subscription.status = "active"
        subscription.cancel_at_period_end = False
    else:
        db.add(Subscription(
            user_id=user_id,
            plan_id=plan.id,
            status="active",
            current_period_end=now + timedelta(days=BILLING_CYCLE_DAYS),
        ))
    db.commit()

    logger.info(f"Plan upgraded to {target_plan}", extra={"user_id": user_id})
    return {"success": True, "message": f"Plan upgraded to {target_plan}", "proration": proration}


def downgrade_plan(db: Session, user_id: str, target_plan: str) -> Dict[str, Any]:
    """
    Downgrade is refused while the user is over the target plan's limits.
    Going to free keeps the paid plan until the end of the period.
    """
    subscription = get_user_subscription_row(db, user_id)
    if not subscription:
        raise NotFoundError("No subscription found", code="SUBSCRIPTION_NOT_FOUND")

    plan = get_plan_by_code(db, target_plan)
    if not plan:
        raise NotFoundError("Target plan not found", code="PLAN_NOT_FOUND")

    violations = check_plan_limit_violations(db, user_id, target_plan)
    if violations:
        raise ConflictError(
            "Current usage exceeds the target plan",
            code="PLAN_LIMIT_VIOLATIONS",
            details={
                "violations": [
                    {"resource": v.resource, "current": v.current, "limit": v.limit, "items": v.items}
                    for v in violations
                ]
            },
        )

    if target_plan == PlanCode.FREE.value:
        subscription.cancel_at_period_end = True
        message = "Subscription will be canceled at the end of the billing period"
    else:
        subscription.plan_id = plan.id
        subscription.cancel_at_period_end = False
        message = f"Plan changed to {target_plan}"
    db.commit()

    logger.info(f"Plan downgrade to {target_plan}", extra={"user_id": user_id})
    return {"success": True, "message": message}
