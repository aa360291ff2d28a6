"""Plan catalogue and lookups."""
from typing import Optional
from sqlalchemy.orm import Session

from zaltyko.models.billing import Plan, PlanCode
import logging

logger = logging.getLogger(__name__)


# Seed values; prices and Stripe ids are overwritten by sync_plans_from_stripe
DEFAULT_PLANS = (
    {"code": PlanCode.FREE.value, "name": "Free", "price_cents": 0, "athlete_limit": 50, "academy_limit": 1},
    {"code": PlanCode.PRO.value, "name": "Pro", "price_cents": 1900, "athlete_limit": 200, "academy_limit": None},
    {"code": PlanCode.PREMIUM.value, "name": "Premium", "price_cents": 4900, "athlete_limit": None, "academy_limit": None},
)


def ensure_default_plans(db: Session) -> None:
    """Insert the default plans that don't exist yet."""
    existing = {code for (code,) in db.query(Plan.code).all()}
    created = 0
    for values in DEFAULT_PLANS:
        if values["code"] not in existing:
            db.add(Plan(**values))
            created += 1
    if created:
        db.commit()
        logger.info(f"Seeded {created} default plans")


def get_plan_by_code(db: Session, code: str) -> Optional[Plan]:
    return db.query(Plan).filter(Plan.code == code).first()


def get_plan_id_by_stripe_price(db: Session, price_id: Optional[str], plan_code: Optional[str] = None) -> Optional[str]:
    """
    Plan for a Stripe price, falling back to a plan code, then to free.
    """
    if price_id:
        plan = db.query(Plan).filter(Plan.stripe_price_id == price_id).first()
        if plan:
            return plan.id
    if plan_code:
        plan = get_plan_by_code(db, plan_code)
        if plan:
            return plan.id
    plan = get_plan_by_code(db, PlanCode.FREE.value)
    return plan.id if plan else None
