"""
Charges

Monthly fee generation and charge maintenance for athletes.

RULES:
- A monthly fee comes from the athlete's group (monthly_fee_cents)
- Athletes without a group or with a zero fee are never charged automatically
- Paid and cancelled charges are never rewritten
"""
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

MONTH_NAMES = (
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
)

OPEN_STATUSES = ("pending", "overdue")
BILLED_STATUSES = ("pending", "paid", "overdue")


@dataclass
class MonthlyGenerationResult:
    created: int
    skipped: int
    charges: List[Charge]

    @property
    def message(self) -> str:
        if self.created:
            return f"Se generaron {self.created} cargos."
        if self.skipped:
            return "Todos los atletas ya tienen cargos para este periodo o no tienen cuota definida."
        return "No hay atletas activos para generar cargos."


def period_for(day: date) -> str:
    return f"{day.year}-{day.month:02d}"


def parse_period(period: str) -> tuple:
    year, month = period.split("-")
    return int(year), int(month)


def period_month_name(period: str) -> str:
    year, month = parse_period(period)
    return f"{MONTH_NAMES[month - 1]} {year}"


def period_due_date(period: str) -> date:
    """Last day of the period's month."""
    year, month = parse_period(period)
    return date(year, month, monthrange(year, month)[1])


def group_fee_label(group_name: str, period: str) -> str:
    return f"Cuota grupo {group_name} – {period_month_name(period)}"


def get_monthly_fee_for_athlete(db: Session, academy_id: str, group_id: Optional[str]) -> int:
    if not group_id:
        return 0
    group = db.query(Group).filter(Group.id == group_id, Group.academy_id == academy_id).first()
    if not group or not group.monthly_fee_cents:
        return 0
    return group.monthly_fee_cents


def _athletes_for_generation(db: Session, tenant_id: str, academy_id: str, group_id: Optional[str]) -> List[Athlete]:
    query = db.query(Athlete).filter(
        Athlete.academy_id == academy_id,
        Athlete.tenant_id == tenant_id,
        Athlete.status == "active",
    )
    if group_id:
        query = query.join(GroupAthlete, GroupAthlete.athlete_id == Athlete.id).filter(
            GroupAthlete.group_id == group_id,
            GroupAthlete.tenant_id == tenant_id,
        )
    return query.limit(1000).all()


def has_billed_charge(db: Session, academy_id: str, athlete_id: str, period: str) -> bool:
    return db.query(Charge.id).filter(
        Charge.academy_id == academy_id,
        Charge.athlete_id == athlete_id,
        Charge.period == period,
        Charge.status.in_(BILLED_STATUSES),
    ).first() is not None


def generate_monthly_charges(
    db: Session,
    tenant_id: str,
    academy_id: str,
    period: str,
    group_id: Optional[str] = None,
    skip_duplicates: bool = True,
) -> MonthlyGenerationResult:
    """One pending charge per active athlete with a paying group."""
    athletes = _athletes_for_generation(db, tenant_id, academy_id, group_id)
    due_date = period_due_date(period)

    group_ids = {a.group_id for a in athletes if a.group_id}
    groups = {
        g.id: g for g in db.query(Group).filter(
            Group.academy_id == academy_id,
            Group.id.in_(group_ids)
        ).all()
    } if group_ids else {}

    created: List[Charge] = []
    skipped = 0

    for athlete in athletes:
        group = groups.get(athlete.group_id) if athlete.group_id else None
        if not group:
            skipped += 1
            continue

        fee = group.monthly_fee_cents or 0
        if fee == 0:
            skipped += 1
            continue

        if skip_duplicates and has_billed_charge(db, academy_id, athlete.id, period):
            skipped += 1
            continue

        charge = Charge(
            tenant_id=tenant_id,
            academy_id=academy_id,
            athlete_id=athlete.id,
            label=group_fee_label(group.name, period),
            amount_cents=fee,
            currency="EUR",
            period=period,
            due_date=due_date,
            status="pending",
        )
        db.add(charge)
        created.append(charge)

    db.commit()
    logger.info(
        f"Monthly charges for {period}: {len(created)} created, {skipped} skipped",
        extra={"tenant_id": tenant_id, "academy_id": academy_id}
    )
    return MonthlyGenerationResult(created=len(created), skipped=skipped, charges=created)


def sync_charges_for_athlete_current_period(
    db: Session,
    academy_id: str,
    athlete_id: str,
    group_id: str,
    now: Optional[datetime] = None,
) -> int:
    """
    Reprice this month's open charges after an athlete changes group.

    Never raises: a failure here must not undo the group change.
    Returns the number of charges updated.
    """
    now = now or datetime.utcnow()
    period = period_for(now.date() if isinstance(now, datetime) else now)

    try:
        open_charges = db.query(Charge).filter(
            Charge.academy_id == academy_id,
            Charge.athlete_id == athlete_id,
            Charge.period == period,
            Charge.status.in_(OPEN_STATUSES),
        ).all()
        if not open_charges:
            return 0

        fee = get_monthly_fee_for_athlete(db, academy_id, group_id)
        if fee == 0:
            return 0

        group = db.query(Group).filter(Group.id == group_id, Group.academy_id == academy_id).first()
        label = group_fee_label(group.name if group else "Grupo", period)

        for charge in open_charges:
            charge.amount_cents = fee
            charge.label = label
        db.commit()
        return len(open_charges)
    except Exception as e:
        db.rollback()
        logger.error(f"Charge sync failed for athlete {athlete_id}: {e}", extra={"academy_id": academy_id})
        return 0


def bulk_update_status(db: Session, tenant_id: str, charge_ids: Iterable[str], status: str,
                       payment_method: Optional[str] = None) -> int:
    charges = db.query(Charge).filter(
        Charge.tenant_id == tenant_id,
        Charge.id.in_(list(charge_ids))
    ).all()
    for charge in charges:
        apply_status(charge, status, payment_method)
    db.commit()
    return len(charges)


def apply_status(charge: Charge, status: str, payment_method: Optional[str] = None) -> None:
    """Set status, stamping paid_at when a charge becomes paid."""
    if status == "paid" and charge.status != "paid":
        charge.paid_at = datetime.utcnow()
    elif status != "paid":
        charge.paid_at = None
    charge.status = status
    if payment_method:
        charge.payment_method = payment_method
