"""
Daily Alerts

Scans every academy for overdue payments, low attendance and nearly full
classes, and writes in-app notifications for the academy staff.

RULES:
- Payment: pending or overdue charges due PAYMENT_OVERDUE_DAYS or more ago
- Attendance: active athletes present in less than ATTENDANCE_THRESHOLD %
  of their recorded sessions over the last ATTENDANCE_WINDOW_DAYS days
- Capacity: classes with a capacity whose enrollments reach CAPACITY_THRESHOLD %
- A user gets at most one notification per alert type and row per day

Guardians with email notifications on also get an email about overdue
charges of their athletes, once per charge and day.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence
import html as html_lib

import httpx
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from zaltyko.core.exceptions import ValidationError
from zaltyko.models.academy import Academy, Membership
from zaltyko.models.athlete import Athlete
from zaltyko.models.charges import Charge
from zaltyko.models.guardian import Guardian, GuardianAthlete
from zaltyko.models.notification import Notification
from zaltyko.models.schedule import AcademyClass, AttendanceRecord, ClassEnrollment, ClassSession
from zaltyko.services.email import send_email
from zaltyko.services.reports import attendance_rate
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_OVERDUE_DAYS = 7
ATTENDANCE_THRESHOLD = 70.0
ATTENDANCE_WINDOW_DAYS = 30
CAPACITY_THRESHOLD = 90.0

# Membership roles notified per alert type
ALERT_ROLES = {
    "payment_overdue": ("owner", "admin"),
    "attendance_low": ("owner", "admin", "coach"),
    "capacity_alert": ("owner", "admin", "coach"),
}


@dataclass
class Alert:
    type: str
    resource_id: str
    title: str
    message: str
    data: Dict[str, Any]


@dataclass
class DailyAlertsResult:
    academies_processed: int = 0
    payment_alerts: int = 0
    attendance_alerts: int = 0
    capacity_alerts: int = 0
    notifications_created: int = 0
    emails_sent: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "academies_processed": self.academies_processed,
            "results": {
                "payment_alerts": self.payment_alerts,
                "attendance_alerts": self.attendance_alerts,
                "capacity_alerts": self.capacity_alerts,
            },
            "notifications_created": self.notifications_created,
            "emails_sent": self.emails_sent,
            "errors": self.errors,
        }


# =============================================================================
# Detection
# =============================================================================

def detect_payment_alerts(db: Session, academy: Academy, today: date,
                          days_overdue: int = PAYMENT_OVERDUE_DAYS) -> List[Alert]:
    cutoff = today - timedelta(days=days_overdue)
    rows = db.query(Charge, Athlete).join(
        Athlete, Athlete.id == Charge.athlete_id
    ).filter(
        Charge.academy_id == academy.id,
        Charge.status.in_(("pending", "overdue")),
        Charge.due_date.isnot(None),
        Charge.due_date <= cutoff,
    ).order_by(Charge.due_date).all()

    alerts = []
    for charge, athlete in rows:
        days = (today - charge.due_date).days
        amount = charge.amount_cents / 100
        alerts.append(Alert(
            type="payment_overdue",
            resource_id=charge.id,
            title=f"Pago atrasado: {athlete.name}",
            message=f"El pago de {amount:.2f} € está {days} días atrasado.",
            data={"chargeId": charge.id, "athleteId": athlete.id, "amount": amount,
                  "daysOverdue": days},
        ))
    return alerts


def detect_attendance_alerts(db: Session, academy: Academy, today: date,
                             threshold: float = ATTENDANCE_THRESHOLD,
                             window_days: int = ATTENDANCE_WINDOW_DAYS) -> List[Alert]:
    present = func.sum(case((AttendanceRecord.status == "present", 1), else_=0))
    rows = db.query(
        Athlete.id, Athlete.name, func.count(AttendanceRecord.id), present
    ).join(
        AttendanceRecord, AttendanceRecord.athlete_id == Athlete.id
    ).join(
        ClassSession, ClassSession.id == AttendanceRecord.session_id
    ).join(
        AcademyClass, AcademyClass.id == ClassSession.class_id
    ).filter(
        AcademyClass.academy_id == academy.id,
        Athlete.status == "active",
        ClassSession.session_date >= today - timedelta(days=window_days),
        ClassSession.session_date <= today,
    ).group_by(Athlete.id, Athlete.name).all()

    alerts = []
    for athlete_id, name, total, present_count in rows:
        rate = attendance_rate(present_count or 0, total)
        if total and rate < threshold:
            alerts.append(Alert(
                type="attendance_low",
                resource_id=athlete_id,
                title=f"Asistencia baja: {name}",
                message=(f"{name} ha asistido al {rate:.0f}% de sus clases "
                         f"en los últimos {window_days} días."),
                data={"athleteId": athlete_id, "attendanceRate": rate,
                      "present": present_count or 0, "total": total},
            ))
    return alerts


def detect_capacity_alerts(db: Session, academy: Academy,
                           threshold: float = CAPACITY_THRESHOLD) -> List[Alert]:
    rows = db.query(AcademyClass, func.count(ClassEnrollment.id)).outerjoin(
        ClassEnrollment, ClassEnrollment.class_id == AcademyClass.id
    ).filter(
        AcademyClass.academy_id == academy.id,
        AcademyClass.capacity > 0,
    ).group_by(AcademyClass.id).all()

    alerts = []
    for academy_class, enrolled in rows:
        percentage = round(enrolled / academy_class.capacity * 100, 2)
        if percentage >= threshold:
            alerts.append(Alert(
                type="capacity_alert",
                resource_id=academy_class.id,
                title=f"Cupo casi lleno: {academy_class.name}",
                message=(f"{academy_class.name} tiene {enrolled} de {academy_class.capacity} "
                         f"plazas ocupadas ({percentage:.0f}%)."),
                data={"classId": academy_class.id, "enrolled": enrolled,
                      "capacity": academy_class.capacity, "percentage": percentage},
            ))
    return alerts


# =============================================================================
# Delivery
# =============================================================================

def staff_user_ids(db: Session, academy: Academy, roles: Sequence[str]) -> List[str]:
    rows = db.query(Membership.user_id).filter(
        Membership.academy_id == academy.id,
        Membership.role.in_(roles),
    ).all()
    user_ids = [user_id for (user_id,) in rows]
    if academy.owner_id and "owner" in roles:
        user_ids.append(academy.owner_id)
    return list(dict.fromkeys(user_ids))


def create_notification(db: Session, tenant_id: str, user_id: str, alert: Alert,
                        today: date) -> Optional[Notification]:
    """Notification for one user, None when they already got this alert today."""
    start_of_day = datetime.combine(today, time.min)
    exists = db.query(Notification.id).filter(
        Notification.user_id == user_id,
        Notification.type == alert.type,
        Notification.resource_id == alert.resource_id,
        Notification.created_at >= start_of_day,
    ).first()
    if exists:
        return None

    notification = Notification(
        tenant_id=tenant_id,
        user_id=user_id,
        type=alert.type,
        title=alert.title,
        message=alert.message,
        resource_id=alert.resource_id,
        data=alert.data,
    )
    db.add(notification)
    return notification


def email_guardians(db: Session, academy: Academy, alert: Alert) -> int:
    """Email the guardians of the athlete behind an overdue charge."""
    guardians = db.query(Guardian).join(
        GuardianAthlete, GuardianAthlete.guardian_id == Guardian.id
    ).filter(
        GuardianAthlete.athlete_id == alert.data["athleteId"],
        Guardian.tenant_id == academy.tenant_id,
        Guardian.notify_email.is_(True),
    ).all()

    subject = f"{academy.name} · Pago pendiente"
    html = (
        f"<h2>{html_lib.escape(academy.name)}</h2>"
        f"<p>{html_lib.escape(alert.title)}</p>"
        f"<p>{html_lib.escape(alert.message)}</p>"
    )
    sent = 0
    for guardian in guardians:
        try:
            if send_email(guardian.email, subject, html, text=alert.message,
                          reply_to=academy.contact_email):
                sent += 1
        except (httpx.HTTPError, ValidationError) as e:
            logger.error(f"Error emailing guardian {guardian.id}: {e}",
                         extra={"tenant_id": academy.tenant_id, "academy_id": academy.id})
    return sent


def process_academy(db: Session, academy: Academy, today: date, result: DailyAlertsResult) -> None:
    detected = {
        "payment_overdue": detect_payment_alerts(db, academy, today),
        "attendance_low": detect_attendance_alerts(db, academy, today),
        "capacity_alert": detect_capacity_alerts(db, academy),
    }
    result.payment_alerts += len(detected["payment_overdue"])
    result.attendance_alerts += len(detected["attendance_low"])
    result.capacity_alerts += len(detected["capacity_alert"])

    for alert_type, alerts in detected.items():
        user_ids = staff_user_ids(db, academy, ALERT_ROLES[alert_type])
        for alert in alerts:
            created = [
                create_notification(db, academy.tenant_id, user_id, alert, today)
                for user_id in user_ids
            ]
            new = [n for n in created if n is not None]
            result.notifications_created += len(new)
            db.flush()

            # Guardians follow the staff dedupe: no new notification, no email
            if alert_type == "payment_overdue" and new:
                result.emails_sent += email_guardians(db, academy, alert)
    db.commit()


def run_daily_alerts(db: Session, today: Optional[date] = None) -> DailyAlertsResult:
    """Nightly job. One academy failing doesn't stop the rest."""
    today = today or date.today()
    result = DailyAlertsResult()
    academies = db.query(Academy).filter(Academy.is_suspended.is_(False)).order_by(Academy.created_at).all()

    for academy in academies:
        try:
            process_academy(db, academy, today, result)
            result.academies_processed += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Daily alerts failed for academy {academy.id}: {e}", exc_info=True,
                         extra={"tenant_id": academy.tenant_id, "academy_id": academy.id})
            result.errors.append(f"Academy {academy.id}: {e}")

    logger.info(
        f"Daily alerts: {result.payment_alerts} payment, {result.attendance_alerts} attendance, "
        f"{result.capacity_alerts} capacity across {result.academies_processed} academies"
    )
    return result
