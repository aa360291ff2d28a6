"""
Event Endpoints

Events may be created before the profile has a tenant (first academy
just created in another tab); the tenant is then taken from the academy.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from zaltyko.core.permissions import require_roles as check_roles
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.academy import Academy
from zaltyko.models.event import Event
from zaltyko.models.user import UserRole
from zaltyko.schemas.event import EventCreate, EventUpdate, EventResponse, EventListResponse
from zaltyko.schemas.notification import EventNotifyRequest, EventNotifyResponse
from zaltyko.services.audit import log_audit
from zaltyko.services.event_notifications import announce_event
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def _academy_for_event(db: Session, context: TenantContext, academy_id: str) -> Academy:
    """
    Academy an event is written under.

    SECURITY: Outside platform admins, the academy must be in the caller's
    tenant, or owned by the caller when the profile has no tenant yet.
    """
    academy = db.query(Academy).filter(Academy.id == academy_id).first()
    if not academy:
        raise NotFoundError("Academy not found", code="ACADEMY_NOT_FOUND")
    if context.is_platform_admin:
        return academy

    tenant_id = context.tenant_id or context.user.tenant_id
    if tenant_id:
        if academy.tenant_id != tenant_id:
            raise AuthorizationError("Academy belongs to another tenant", code="ACADEMY_TENANT_MISMATCH")
    elif academy.owner_id != context.user_id:
        raise AuthorizationError("Academy access denied", code="ACADEMY_NOT_FOUND_OR_ACCESS_DENIED")
    return academy


def _get_event(db: Session, context: TenantContext, event_id: str) -> Event:
    query = db.query(Event).filter(Event.id == event_id)
    if not context.is_platform_admin:
        tenant_id = context.tenant_id or context.user.tenant_id
        if not tenant_id:
            raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")
        query = query.filter(Event.tenant_id == tenant_id)
    event = query.first()
    if not event:
        raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")
    return event


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = _academy_for_event(db, context, data.academy_id)
    event = Event(tenant_id=academy.tenant_id, **data.model_dump())
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(f"Event created: {event.id} ({'public' if event.is_public else 'private'})",
                extra={"tenant_id": academy.tenant_id, "academy_id": academy.id})
    return event


@router.get("", response_model=EventListResponse)
async def list_events(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(Event)
    if not context.is_platform_admin:
        tenant_id = context.tenant_id or context.user.tenant_id
        if not tenant_id:
            return EventListResponse(items=[], total=0, page=page, limit=limit)
        query = query.filter(Event.tenant_id == tenant_id)
    if academy_id:
        query = query.filter(Event.academy_id == academy_id)

    total = query.count()
    items = query.order_by(Event.start_date.desc()).offset((page - 1) * limit).limit(limit).all()
    return EventListResponse(
        items=[EventResponse.model_validate(e) for e in items],
        total=total, page=page, limit=limit,
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return _get_event(db, context, event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    data: EventUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    event = _get_event(db, context, event_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(event, field, value)
    db.commit()
    db.refresh(event)
    return event


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    event = _get_event(db, context, event_id)
    db.delete(event)
    db.commit()
    return None


@router.post("/{event_id}/notify", response_model=EventNotifyResponse)
async def notify_event(
    event_id: str,
    data: EventNotifyRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Email an event to the academy staff or to nearby academies.

    Only public events are announced outside the organizing academy.
    """
    check_roles(context.user, UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN, UserRole.COACH)
    event = _get_event(db, context, event_id)
    if data.type != "internal_staff" and not event.is_public:
        raise ValidationError("Only public events can be announced to other academies",
                              code="EVENT_NOT_PUBLIC")

    organizer = db.query(Academy).filter(Academy.id == event.academy_id).first()
    result = announce_event(db, event, organizer, data.type)
    log_audit(db, event.tenant_id, context.user_id, "event.notified", "event", event.id,
              {"type": data.type, "sent": result.sent}, commit=True)
    return EventNotifyResponse(type=data.type, recipients=result.recipients, sent=result.sent,
                               errors=result.errors)
