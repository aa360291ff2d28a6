"""
Class Session Generation

Turns weekly class templates into dated sessions.

RULES:
- Walk every day from today to today + weeks_ahead weeks, inclusive
- Create a session on days whose weekday is configured (0 = Sunday)
- Skip exception dates and dates that already have a session
- Never touch existing sessions

Running it twice is safe: the second run only skips.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

from zaltyko.config import get_settings
from zaltyko.models.schedule import AcademyClass, ClassException, ClassSession
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GenerationResult:
    generated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "GenerationResult") -> None:
        self.generated += other.generated
        self.skipped += other.skipped
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        return {"generated": self.generated, "skipped": self.skipped, "errors": self.errors}


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def generate_class_sessions(
    db: Session,
    class_id: str,
    weeks_ahead: Optional[int] = None,
    today: Optional[date] = None,
    tenant_id: Optional[str] = None,
) -> GenerationResult:
    weeks_ahead = weeks_ahead if weeks_ahead is not None else get_settings().SESSION_WEEKS_AHEAD
    today = today or date.today()
    result = GenerationResult()

    query = db.query(AcademyClass).filter(AcademyClass.id == class_id)
    if tenant_id:
        query = query.filter(AcademyClass.tenant_id == tenant_id)
    academy_class = query.first()

    if not academy_class:
        result.errors.append(f"Class {class_id} not found")
        return result

    if not academy_class.auto_generate_sessions:
        result.errors.append(f"Class {class_id}: auto-generation disabled")
        return result

    weekdays = set(academy_class.weekday_numbers)
    if not weekdays:
        result.errors.append(f"Class {class_id}: no weekdays configured")
        return result

    end = today + timedelta(weeks=weeks_ahead)

    exception_dates = {
        d for (d,) in db.query(ClassException.exception_date).filter(
            ClassException.class_id == class_id,
            ClassException.exception_date >= today,
            ClassException.exception_date <= end,
        ).all()
    }
    existing_dates = {
        d for (d,) in db.query(ClassSession.session_date).filter(
            ClassSession.class_id == class_id,
            ClassSession.session_date >= today,
            ClassSession.session_date <= end,
        ).all()
    }

    day = today
    while day <= end:
        if sunday_based_weekday(day) in weekdays:
            if day in exception_dates or day in existing_dates:
                result.skipped += 1
            else:
                db.add(ClassSession(
                    tenant_id=academy_class.tenant_id,
                    class_id=academy_class.id,
                    coach_id=academy_class.coach_id,
                    session_date=day,
                    start_time=academy_class.start_time,
                    end_time=academy_class.end_time,
                    status="scheduled",
                ))
                existing_dates.add(day)
                result.generated += 1
        day += timedelta(days=1)

    db.commit()
    logger.info(
        f"Generated {result.generated} sessions for class {class_id} ({result.skipped} skipped)",
        extra={"tenant_id": academy_class.tenant_id}
    )
    return result


def generate_sessions_for_tenant(
    db: Session,
    tenant_id: str,
    weeks_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    total = GenerationResult()
    class_ids = [cid for (cid,) in db.query(AcademyClass.id).filter(
        AcademyClass.tenant_id == tenant_id,
        AcademyClass.auto_generate_sessions.is_(True),
    ).all()]
    for class_id in class_ids:
        total.merge(generate_class_sessions(db, class_id, weeks_ahead, today, tenant_id=tenant_id))
    return total


def generate_sessions_for_all_tenants(
    db: Session,
    weeks_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """Nightly job. One tenant failing doesn't stop the rest."""
    total = GenerationResult()
    tenant_ids = [tid for (tid,) in db.query(AcademyClass.tenant_id).filter(
        AcademyClass.auto_generate_sessions.is_(True)
    ).distinct().all()]

    for tenant_id in tenant_ids:
        try:
            total.merge(generate_sessions_for_tenant(db, tenant_id, weeks_ahead, today))
        except Exception as e:
            db.rollback()
            logger.error(f"Session generation failed for tenant {tenant_id}: {e}", exc_info=True,
                         extra={"tenant_id": tenant_id})
            total.errors.append(f"Tenant {tenant_id}: {e}")

    logger.info(f"Session generation: {total.generated} generated across {len(tenant_ids)} tenants")
    return total


def delete_future_sessions(db: Session, class_id: str, today: Optional[date] = None) -> int:
    """
    Remove upcoming scheduled sessions of a class, e.g. after its weekdays change.
    Completed and cancelled sessions are kept.
    """
    today = today or date.today()
    deleted = db.query(ClassSession).filter(
        ClassSession.class_id == class_id,
        ClassSession.session_date >= today,
        (ClassSession.status == "scheduled") | (ClassSession.status.is_(None)),
    ).delete(synchronize_session=False)
    db.commit()
    return deleted
