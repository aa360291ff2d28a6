"""
Event Announcements

Emails an event to the organizing academy's staff, or to the other
academies of the same city, province or country.

Location matching ignores case and surrounding spaces. Suspended
academies never receive announcements. An academy is reached through
its contact email, or its owner's email when it has none.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import html as html_lib

import httpx
from sqlalchemy import func
from sqlalchemy.orm import Session

from zaltyko.core.exceptions import ValidationError
from zaltyko.models.academy import Academy, Membership
from zaltyko.models.event import Event
from zaltyko.models.user import User
from zaltyko.services.email import send_email
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

STAFF_ROLES = ("owner", "admin", "coach")

# Notify type -> (event column, academy column)
LOCATION_FIELDS = {
    "city": ("city", "city"),
    "province": ("province", "region"),
    "country": ("country", "country"),
}


@dataclass
class AnnouncementResult:
    recipients: int = 0
    sent: int = 0
    errors: List[str] = field(default_factory=list)


def staff_emails(db: Session, academy_id: str) -> List[str]:
    rows = db.query(User.email).join(
        Membership, Membership.user_id == User.id
    ).filter(
        Membership.academy_id == academy_id,
        Membership.role.in_(STAFF_ROLES),
        User.is_active.is_(True),
    ).order_by(User.email).all()
    return [email for (email,) in rows if email]


def event_location(event: Event, organizer: Academy, notify_type: str) -> Optional[str]:
    """Location value to match, from the event or else its academy."""
    event_field, academy_field = LOCATION_FIELDS[notify_type]
    value = getattr(event, event_field) or getattr(organizer, academy_field)
    value = (value or "").strip().lower()
    return value or None


def nearby_academy_emails(db: Session, organizer: Academy, notify_type: str, location: str) -> List[str]:
    column = getattr(Academy, LOCATION_FIELDS[notify_type][1])
    academies = db.query(Academy).filter(
        Academy.id != organizer.id,
        Academy.is_suspended.is_(False),
        func.lower(func.trim(column)) == location,
    ).order_by(Academy.name).all()

    emails = []
    for academy in academies:
        email = academy.contact_email or (academy.owner.email if academy.owner else None)
        if email:
            emails.append(email.strip().lower())
    return emails


def get_recipients(db: Session, event: Event, organizer: Academy, notify_type: str) -> List[str]:
    if notify_type == "internal_staff":
        emails = staff_emails(db, organizer.id)
    else:
        location = event_location(event, organizer, notify_type)
        if not location:
            return []
        emails = nearby_academy_emails(db, organizer, notify_type, location)
    return list(dict.fromkeys(emails))


def render_event_email(event: Event, organizer: Academy) -> Tuple[str, str, str]:
    """(subject, html, text) announcing an event."""
    when = event.start_date.strftime("%d/%m/%Y") if event.start_date else "Fecha por confirmar"
    if event.end_date and event.end_date != event.start_date:
        when = f"{when} - {event.end_date.strftime('%d/%m/%Y')}"
    where = ", ".join(part for part in (event.location, event.city, event.province, event.country) if part)

    subject = f"Nuevo evento: {event.title}"
    lines = [
        f"<h2>{html_lib.escape(event.title)}</h2>",
        f"<p>Organiza: <strong>{html_lib.escape(organizer.name)}</strong></p>",
        f"<p>Fecha: {html_lib.escape(when)}</p>",
    ]
    if where:
        lines.append(f"<p>Lugar: {html_lib.escape(where)}</p>")
    if event.description:
        lines.append(f"<p>{html_lib.escape(event.description)}</p>")
    if event.website:
        lines.append(f"<p><a href=\"{html_lib.escape(event.website)}\">Más información</a></p>")

    text = f"{event.title} · {organizer.name} · {when}"
    if where:
        text = f"{text} · {where}"
    return subject, "".join(lines), text


def announce_event(db: Session, event: Event, organizer: Academy, notify_type: str) -> AnnouncementResult:
    """Send the announcement; one recipient failing doesn't stop the others."""
    result = AnnouncementResult()
    recipients = get_recipients(db, event, organizer, notify_type)
    result.recipients = len(recipients)
    if not recipients:
        return result

    subject, html, text = render_event_email(event, organizer)
    for email in recipients:
        try:
            if send_email(email, subject, html, text=text, reply_to=event.contact_email):
                result.sent += 1
        except (httpx.HTTPError, ValidationError) as e:
            logger.error(f"Error announcing event {event.id} to {email}: {e}",
                         extra={"tenant_id": event.tenant_id})
            result.errors.append(f"{email}: {e}")

    logger.info(f"Event {event.id} announced ({notify_type}): {result.sent}/{result.recipients} sent",
                extra={"tenant_id": event.tenant_id})
    return result
