"""
Public Directory Endpoints

No authentication. Only public, non-suspended academies and public
events are visible, and only their public fields.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from datetime import date
from typing import Optional
import html as html_lib
import httpx

from zaltyko.database import get_db
from zaltyko.api.scoping import paginate
from zaltyko.core.exceptions import NotFoundError
from zaltyko.models.academy import Academy
from zaltyko.models.event import ContactMessage, Event
from zaltyko.schemas.academy import ContactRequest, PublicAcademyListResponse, PublicAcademyResponse
from zaltyko.schemas.common import MessageResponse
from zaltyko.schemas.event import PublicEventListResponse, PublicEventResponse
from zaltyko.services.email import send_email
from zaltyko.services.notifications import get_owner_emails
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


def _visible_academies(db: Session):
    return db.query(Academy).filter(Academy.is_public.is_(True), Academy.is_suspended.is_(False))


def _ieq(column, value: str):
    """Trimmed, case-insensitive equality."""
    return func.lower(func.trim(column)) == value.strip().lower()


@router.get("/academies", response_model=PublicAcademyListResponse)
async def list_public_academies(
    search: Optional[str] = Query(None, alias="q"),
    academy_type: Optional[str] = Query(None, alias="type"),
    country: Optional[str] = None,
    region: Optional[str] = None,
    city: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    query = _visible_academies(db)

    if search and search.strip():
        query = query.filter(Academy.name.ilike(f"%{search.strip()}%"))
    if academy_type:
        query = query.filter(Academy.academy_type == academy_type)
    if country and country.strip():
        query = query.filter(_ieq(Academy.country, country))
    if region and region.strip():
        query = query.filter(_ieq(Academy.region, region))
    if city and city.strip():
        query = query.filter(_ieq(Academy.city, city))

    items, total, total_pages = paginate(query.order_by(Academy.name), page, limit)
    return PublicAcademyListResponse(
        items=[PublicAcademyResponse.model_validate(a) for a in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.get("/academies/{academy_id}", response_model=PublicAcademyResponse)
async def get_public_academy(academy_id: str, db: Session = Depends(get_db)):
    academy = _visible_academies(db).filter(Academy.id == academy_id).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")
    return academy


@router.post("/academies/{academy_id}/contact", response_model=MessageResponse,
             status_code=status.HTTP_201_CREATED)
async def contact_academy(
    academy_id: str,
    data: ContactRequest,
    db: Session = Depends(get_db)
):
    """
    Store a message for the academy and forward it by email.

    The message is kept even when the email cannot be delivered.
    """
    academy = _visible_academies(db).filter(Academy.id == academy_id).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")

    message = ContactMessage(
        academy_id=academy.id,
        tenant_id=academy.tenant_id,
        name=data.name,
        email=data.email,
        phone=data.phone,
        message=data.message,
    )
    db.add(message)
    db.commit()

    recipients = [academy.contact_email] if academy.contact_email else get_owner_emails(db, academy.id)
    subject = f"Zaltyko · Nuevo mensaje de {data.name}"
    text = f"{data.name} ({data.email}{', ' + data.phone if data.phone else ''}) escribe:\n\n{data.message}"
    # SECURITY: Sender input is untrusted, escape it before it reaches the HTML body
    body = html_lib.escape(data.message).replace("\n", "<br>")
    html = (
        f"<h2>Nuevo mensaje desde el directorio</h2>"
        f"<p><strong>{html_lib.escape(data.name)}</strong> ({html_lib.escape(data.email)})</p>"
        f"<p>{body}</p>"
    )
    for recipient in recipients:
        try:
            send_email(recipient, subject, html, text, reply_to=data.email)
        except httpx.HTTPError as e:
            logger.error(f"Contact email to academy {academy.id} failed: {e}",
                         extra={"tenant_id": academy.tenant_id})

    return MessageResponse(message="Mensaje enviado")


@router.get("/events", response_model=PublicEventListResponse)
async def list_public_events(
    country: Optional[str] = None,
    province: Optional[str] = None,
    city: Optional[str] = None,
    discipline: Optional[str] = None,
    level: Optional[str] = None,
    include_past: bool = Query(False, alias="includePast"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Public events, upcoming only unless includePast is set."""
    query = db.query(Event).join(Academy, Academy.id == Event.academy_id).filter(
        Event.is_public.is_(True),
        Academy.is_suspended.is_(False),
    )
    if not include_past:
        query = query.filter(Event.start_date >= date.today())
    if country and country.strip():
        query = query.filter(_ieq(Event.country, country))
    if province and province.strip():
        query = query.filter(_ieq(Event.province, province))
    if city and city.strip():
        query = query.filter(_ieq(Event.city, city))
    if discipline:
        query = query.filter(Event.discipline == discipline)
    if level:
        query = query.filter(Event.level == level)

    items, total, _ = paginate(query.order_by(Event.start_date), page, limit)
    return PublicEventListResponse(
        items=[PublicEventResponse.model_validate(e) for e in items],
        total=total, page=page, limit=limit,
    )


@router.get("/events/{event_id}", response_model=PublicEventResponse)
async def get_public_event(event_id: str, db: Session = Depends(get_db)):
    event = db.query(Event).join(Academy, Academy.id == Event.academy_id).filter(
        Event.id == event_id,
        Event.is_public.is_(True),
        Academy.is_suspended.is_(False),
    ).first()
    if not event:
        raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")
    return event
