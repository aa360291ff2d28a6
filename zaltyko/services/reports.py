"""
Reports

Attendance and financial aggregates for the academy dashboard.
"""
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.group import GroupAthlete
from zaltyko.models.schedule import AcademyClass, AttendanceRecord, ClassSession


def attendance_rate(present: int, total: int) -> float:
    if not total:
        return 0.0
    return round(present / total * 100, 2)


def athlete_attendance_report(
    db: Session,
    tenant_id: str,
    athlete_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    query = db.query(AttendanceRecord, ClassSession, AcademyClass).join(
        ClassSession, ClassSession.id == AttendanceRecord.session_id
    ).join(
        AcademyClass, AcademyClass.id == ClassSession.class_id
    ).filter(
        AttendanceRecord.athlete_id == athlete_id,
        AttendanceRecord.tenant_id == tenant_id,
    )
    if date_from:
        query = query.filter(ClassSession.session_date >= date_from)
    if date_to:
        query = query.filter(ClassSession.session_date <= date_to)

    rows = query.order_by(ClassSession.session_date).all()
    counts = {"present": 0, "absent": 0, "late": 0, "excused": 0}
    sessions = []
    for record, session, academy_class in rows:
        if record.status in counts:
            counts[record.status] += 1
        sessions.append({
            "sessionId": session.id,
            "date": session.session_date.isoformat(),
            "className": academy_class.name,
            "status": record.status,
        })

    total = len(rows)
    return {
        "athleteId": athlete_id,
        "total": total,
        **counts,
        "attendanceRate": attendance_rate(counts["present"], total),
        "sessions": sessions,
    }


def group_attendance_report(
    db: Session,
    tenant_id: str,
    group_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, Any]:
    athletes = db.query(Athlete).join(
        GroupAthlete, GroupAthlete.athlete_id == Athlete.id
    ).filter(
        GroupAthlete.group_id == group_id,
        GroupAthlete.tenant_id == tenant_id,
    ).order_by(Athlete.name).all()

    entries: List[Dict[str, Any]] = []
    for athlete in athletes:
        report = athlete_attendance_report(db, tenant_id, athlete.id, date_from, date_to)
        entries.append({
            "athleteId": athlete.id,
            "name": athlete.name,
            "total": report["total"],
            "present": report["present"],
            "attendanceRate": report["attendanceRate"],
        })

    rates = [e["attendanceRate"] for e in entries]
    return {
        "groupId": group_id,
        "athletes": entries,
        "averageRate": round(sum(rates) / len(rates), 2) if rates else 0.0,
    }


def financial_metrics(db: Session, tenant_id: str, academy_id: str, period: Optional[str] = None) -> Dict[str, Any]:
    """Billing totals in cents for an academy, optionally for one period."""
    query = db.query(Charge.status, func.count(Charge.id), func.coalesce(func.sum(Charge.amount_cents), 0)).filter(
        Charge.academy_id == academy_id,
        Charge.tenant_id == tenant_id,
        Charge.status != "cancelled",
    )
    if period:
        query = query.filter(Charge.period == period)

    by_status: Dict[str, Dict[str, int]] = {}
    for status, count, total in query.group_by(Charge.status).all():
        by_status[status] = {"count": count, "amountCents": int(total)}

    def amount(status: str) -> int:
        return by_status.get(status, {}).get("amountCents", 0)

    billed = sum(v["amountCents"] for v in by_status.values())
    collected = amount("paid")

    active_athletes = db.query(func.count(Athlete.id)).filter(
        Athlete.academy_id == academy_id,
        Athlete.tenant_id == tenant_id,
        Athlete.status == "active",
    ).scalar() or 0

    return {
        "period": period,
        "totalBilledCents": billed,
        "collectedCents": collected,
        "pendingCents": amount("pending") + amount("partial"),
        "overdueCents": amount("overdue"),
        "collectionRate": round(collected / billed * 100, 2) if billed else 0.0,
        "byStatus": by_status,
        "activeAthletes": active_athletes,
        "averageRevenuePerAthlete": round(collected / active_athletes) if active_athletes else 0,
    }
