"""
Plan Sync from Stripe

Pulls active recurring prices and upserts plan rows by plan code.
The plan code comes from price metadata, product metadata, or the price
nickname, in that order. Plans whose Stripe price disappeared are archived.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from zaltyko.models.billing import Plan
from zaltyko.services.stripe_client import get_stripe, metadata_value, to_dict
from zaltyko.utils.logging import get_logger, log_external_service

logger = get_logger(__name__)


def resolve_plan_code(price: Dict[str, Any]) -> Optional[str]:
    product = price.get("product")
    product_metadata = product.get("metadata") if isinstance(product, dict) else None
    code = (
        metadata_value(price.get("metadata"), "plan_code", "planCode")
        or metadata_value(product_metadata, "plan_code", "planCode")
    )
    if not code and price.get("nickname"):
        code = "_".join(price["nickname"].lower().split())
    return code


def _athlete_limit(price: Dict[str, Any], fallback: Optional[int]) -> Optional[int]:
    raw = metadata_value(price.get("metadata"), "athlete_limit")
    if not raw:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def sync_plans_from_stripe(db: Session) -> Dict[str, List[str]]:
    stripe = get_stripe()
    response = to_dict(stripe.Price.list(active=True, limit=100, expand=["data.product"]))
    log_external_service("stripe", "price.list", logger)

    updated: List[str] = []
    missing: List[str] = []

    for price in response.get("data", []):
        price = to_dict(price)
        if not price.get("active") or not price.get("unit_amount"):
            continue

        code = resolve_plan_code(price)
        if not code:
            missing.append(price["id"])
            continue

        product = price.get("product")
        product_id = product if isinstance(product, str) else (product or {}).get("id")
        product_name = product.get("name") if isinstance(product, dict) else None

        plan = db.query(Plan).filter(Plan.code == code).first()
        if not plan:
            plan = Plan(code=code, name=code.title())
            db.add(plan)

        plan.athlete_limit = _athlete_limit(price, plan.athlete_limit)
        plan.price_cents = price["unit_amount"]
        plan.stripe_price_id = price["id"]
        plan.stripe_product_id = product_id
        plan.currency = (price.get("currency") or "eur").lower()
        plan.billing_interval = (price.get("recurring") or {}).get("interval")
        plan.name = price.get("nickname") or product_name or code.upper()
        plan.is_active = True
        updated.append(code)

    archived: List[str] = []
    if updated:
        stale = db.query(Plan).filter(
            Plan.stripe_price_id.isnot(None),
            Plan.code.notin_(updated)
        ).all()
        for plan in stale:
            plan.is_active = False
            archived.append(plan.code)

    db.commit()
    logger.info(f"Plan sync: {len(updated)} updated, {len(archived)} archived, {len(missing)} without code")
    return {"updatedPlanCodes": updated, "archivedPlanCodes": archived, "missingStripePrices": missing}
