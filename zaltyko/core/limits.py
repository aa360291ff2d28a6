"""
Plan Limits

Resource quotas per subscription plan, enforced when academies, athletes,
classes and groups are created.

DESIGN: Subscriptions belong to the academy owner. An academy without an
owner, and an owner without a subscription row, are on the free plan.

Limits of None mean unlimited.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from zaltyko.core.exceptions import NotFoundError, PlanLimitError
from zaltyko.models.academy import Academy
from zaltyko.models.athlete import Athlete
from zaltyko.models.billing import Plan, PlanCode, Subscription
from zaltyko.models.group import Group
from zaltyko.models.schedule import AcademyClass
import logging

logger = logging.getLogger(__name__)


DEFAULT_ATHLETE_LIMIT = 50

CLASS_LIMITS: Dict[str, Optional[int]] = {"free": 10, "pro": 40, "premium": None}
GROUP_LIMITS: Dict[str, Optional[int]] = {"free": 3, "pro": 10, "premium": None}
ACADEMY_LIMITS: Dict[str, Optional[int]] = {"free": 1, "pro": None, "premium": None}

RESOURCES = ("athletes", "classes", "groups")

UPGRADE_INFO = {
    "free": {
        "next_plan": "pro",
        "price": "19€/mes",
        "benefits": [
            "Hasta 200 atletas",
            "Academias ilimitadas",
            "Hasta 40 clases",
            "Hasta 10 grupos",
        ],
    },
    "pro": {
        "next_plan": "premium",
        "price": "49€/mes",
        "benefits": [
            "Atletas ilimitados",
            "Clases y grupos ilimitados",
            "Soporte prioritario",
        ],
    },
}


@dataclass
class SubscriptionInfo:
    plan_code: str
    athlete_limit: Optional[int]
    class_limit: Optional[int]
    group_limit: Optional[int]
    academy_limit: Optional[int]
    status: str = "active"
    user_id: Optional[str] = None


@dataclass
class LimitResult:
    exceeded: bool
    upgrade_to: Optional[str] = None


@dataclass
class LimitViolation:
    resource: str
    current: int
    limit: int
    items: List[Dict[str, Any]] = field(default_factory=list)


def _limits_for(plan_code: str, plan: Optional[Plan], user_id: Optional[str], status: str) -> SubscriptionInfo:
    if plan_code == PlanCode.PREMIUM.value:
        athlete_limit = None
    elif plan is not None and plan.athlete_limit is not None:
        athlete_limit = plan.athlete_limit
    else:
        athlete_limit = DEFAULT_ATHLETE_LIMIT

    academy_limit = ACADEMY_LIMITS.get(plan_code, 1)
    if plan is not None and plan.academy_limit is not None and plan_code != PlanCode.PREMIUM.value:
        academy_limit = plan.academy_limit

    return SubscriptionInfo(
        plan_code=plan_code,
        athlete_limit=athlete_limit,
        class_limit=CLASS_LIMITS.get(plan_code, CLASS_LIMITS["free"]),
        group_limit=GROUP_LIMITS.get(plan_code, GROUP_LIMITS["free"]),
        academy_limit=academy_limit,
        status=status,
        user_id=user_id,
    )


def free_plan_info(db: Session, user_id: Optional[str] = None) -> SubscriptionInfo:
    plan = db.query(Plan).filter(Plan.code == PlanCode.FREE.value).first()
    return _limits_for(PlanCode.FREE.value, plan, user_id, "active")


def get_user_subscription(db: Session, user_id: str) -> SubscriptionInfo:
    """Plan limits of a user. No subscription row means free."""
    row = db.query(Subscription, Plan).join(Plan, Subscription.plan_id == Plan.id).filter(
        Subscription.user_id == user_id
    ).first()

    if not row:
        return free_plan_info(db, user_id)

    subscription, plan = row
    return _limits_for(plan.code, plan, user_id, subscription.status)


def get_active_subscription(db: Session, academy_id: str) -> SubscriptionInfo:
    """Plan limits of an academy, inherited from its owner."""
    academy = db.query(Academy).filter(Academy.id == academy_id).first()
    if not academy or not academy.owner_id:
        return free_plan_info(db)
    return get_user_subscription(db, academy.owner_id)


def evaluate_limit(plan_code: str, limit: Optional[int], count: int) -> LimitResult:
    """At the limit counts as exceeded: the next creation would go over."""
    if limit is None or count < limit:
        return LimitResult(exceeded=False)
    upgrade_to = "pro" if plan_code == PlanCode.FREE.value else "premium"
    return LimitResult(exceeded=True, upgrade_to=upgrade_to)


def _limit_for_resource(info: SubscriptionInfo, resource: str) -> Optional[int]:
    if resource == "athletes":
        return info.athlete_limit
    if resource == "classes":
        return info.class_limit
    if resource == "groups":
        return info.group_limit
    raise ValueError(f"Unknown limited resource: {resource}")


def count_resource(db: Session, tenant_id: str, academy_id: str, resource: str) -> int:
    model = {"athletes": Athlete, "classes": AcademyClass, "groups": Group}[resource]
    return db.query(func.count(model.id)).filter(
        model.academy_id == academy_id,
        model.tenant_id == tenant_id
    ).scalar() or 0


def assert_within_plan_limits(db: Session, tenant_id: str, academy_id: str, resource: str) -> None:
    """
    Raise 402 LIMIT_REACHED if one more resource would exceed the plan.

    The academy must belong to the tenant, else 404.
    """
    academy = db.query(Academy).filter(
        Academy.id == academy_id,
        Academy.tenant_id == tenant_id
    ).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")

    info = get_active_subscription(db, academy_id)
    limit = _limit_for_resource(info, resource)
    count = count_resource(db, tenant_id, academy_id, resource)
    result = evaluate_limit(info.plan_code, limit, count)

    if result.exceeded:
        logger.info(
            f"Plan limit reached: {resource} {count}/{limit} on {info.plan_code}",
            extra={"tenant_id": tenant_id, "academy_id": academy_id}
        )
        raise PlanLimitError(
            f"Your plan allows {limit} {resource}",
            code="LIMIT_REACHED",
            details={"code": "LIMIT_REACHED", "upgradeTo": result.upgrade_to, "resource": resource},
        )


def count_user_academies(db: Session, user_id: str) -> int:
    return db.query(func.count(Academy.id)).filter(Academy.owner_id == user_id).scalar() or 0


def assert_user_academy_limit(db: Session, user_id: str) -> None:
    """Raise 402 ACADEMY_LIMIT_REACHED if the user can't own another academy."""
    info = get_user_subscription(db, user_id)
    current = count_user_academies(db, user_id)
    result = evaluate_limit(info.plan_code, info.academy_limit, current)

    if result.exceeded:
        raise PlanLimitError(
            f"Your plan allows {info.academy_limit} academies",
            code="ACADEMY_LIMIT_REACHED",
            details={
                "currentCount": current,
                "limit": info.academy_limit,
                "upgradeTo": result.upgrade_to,
            },
        )


def check_plan_limit_violations(db: Session, user_id: str, new_plan_code: str) -> List[LimitViolation]:
    """
    What the user would be over if moved to new_plan_code.

    Used before a downgrade. Counts are compared with > because being
    exactly at the limit is allowed.
    """
    plan = db.query(Plan).filter(Plan.code == new_plan_code).first()
    info = _limits_for(new_plan_code, plan, user_id, "active")
    violations: List[LimitViolation] = []

    academies = db.query(Academy).filter(Academy.owner_id == user_id).order_by(Academy.created_at).all()

    if info.academy_limit is not None and len(academies) > info.academy_limit:
        violations.append(LimitViolation(
            resource="academies",
            current=len(academies),
            limit=info.academy_limit,
            items=[{"id": a.id, "name": a.name} for a in academies],
        ))

    per_academy = (
        ("athletes", Athlete, info.athlete_limit),
        ("classes", AcademyClass, info.class_limit),
        ("groups", Group, info.group_limit),
    )
    for academy in academies:
        for resource, model, limit in per_academy:
            if limit is None:
                continue
            rows = db.query(model).filter(
                model.academy_id == academy.id,
                model.tenant_id == academy.tenant_id
            ).all()
            if len(rows) > limit:
                violations.append(LimitViolation(
                    resource=resource,
                    current=len(rows),
                    limit=limit,
                    items=[{"id": r.id, "name": r.name, "academyId": academy.id} for r in rows],
                ))

    return violations


def get_remaining_limits(db: Session, tenant_id: str, academy_id: str, resource: str) -> Dict[str, Any]:
    """Usage summary for the limits banner in the dashboard."""
    info = get_active_subscription(db, academy_id)
    limit = _limit_for_resource(info, resource)
    current = count_resource(db, tenant_id, academy_id, resource)
    result = evaluate_limit(info.plan_code, limit, current)

    return {
        "resource": resource,
        "current": current,
        "limit": limit,
        "remaining": None if limit is None else max(0, limit - current),
        "planCode": info.plan_code,
        "exceeded": result.exceeded,
        "upgradeTo": result.upgrade_to,
    }


def get_upgrade_info(plan_code: str) -> Optional[Dict[str, Any]]:
    """Next plan up, or None on the top plan."""
    return UPGRADE_INFO.get(plan_code)
