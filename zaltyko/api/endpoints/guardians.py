"""
Guardian Endpoints

Guardians hang off athletes: /athletes/{athlete_id}/guardians. The same
guardian (tenant + email) may look after several athletes, so adding an
existing email reuses the guardian row and only adds the link.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_scoped_or_404
from zaltyko.core.exceptions import NotFoundError, ValidationError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.guardian import Guardian, GuardianAthlete
from zaltyko.schemas.guardian import GuardianCreate, GuardianUpdate, GuardianLinkResponse
from zaltyko.services.audit import log_audit
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/athletes", tags=["guardians"])

GUARDIAN_FIELDS = {
    "name": "name",
    "phone": "phone",
    "relationship": "relationship_type",
    "notify_email": "notify_email",
    "notify_sms": "notify_sms",
}
LINK_FIELDS = {
    "link_relationship": "relationship_type",
    "is_primary": "is_primary",
}
# Fields that may be cleared with an explicit null
NULLABLE_FIELDS = {"phone", "relationship", "link_relationship"}


def _to_response(link: GuardianAthlete) -> GuardianLinkResponse:
    guardian = link.guardian
    return GuardianLinkResponse(
        link_id=link.id,
        guardian_id=guardian.id,
        athlete_id=link.athlete_id,
        profile_id=guardian.profile_id,
        name=guardian.name,
        email=guardian.email,
        phone=guardian.phone,
        relationship=guardian.relationship_type,
        notify_email=guardian.notify_email,
        notify_sms=guardian.notify_sms,
        link_relationship=link.relationship_type,
        is_primary=link.is_primary,
        created_at=link.created_at,
    )


def _get_link(db: Session, athlete: Athlete, link_id: str) -> GuardianAthlete:
    link = db.query(GuardianAthlete).filter(
        GuardianAthlete.id == link_id,
        GuardianAthlete.athlete_id == athlete.id,
        GuardianAthlete.tenant_id == athlete.tenant_id,
    ).first()
    if not link:
        raise NotFoundError("Guardian not found", code="GUARDIAN_NOT_FOUND")
    return link


def _clear_other_primaries(db: Session, athlete_id: str, keep_link_id: str) -> None:
    """An athlete has at most one primary guardian."""
    db.query(GuardianAthlete).filter(
        GuardianAthlete.athlete_id == athlete_id,
        GuardianAthlete.id != keep_link_id,
        GuardianAthlete.is_primary.is_(True),
    ).update({"is_primary": False}, synchronize_session=False)


@router.get("/{athlete_id}/guardians", response_model=list[GuardianLinkResponse])
async def list_guardians(
    athlete_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    links = db.query(GuardianAthlete).join(
        Guardian, Guardian.id == GuardianAthlete.guardian_id
    ).filter(
        GuardianAthlete.athlete_id == athlete.id,
        GuardianAthlete.tenant_id == athlete.tenant_id,
    ).order_by(GuardianAthlete.is_primary.desc(), Guardian.name).all()
    return [_to_response(link) for link in links]


@router.post("/{athlete_id}/guardians", response_model=GuardianLinkResponse,
             status_code=status.HTTP_201_CREATED)
async def add_guardian(
    athlete_id: str,
    data: GuardianCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Link a guardian to an athlete.

    The guardian is upserted by (tenant, lowercased email); its contact
    fields take the submitted values. Linking twice returns the existing link.
    """
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    email = data.email.strip().lower()

    guardian = db.query(Guardian).filter(
        Guardian.tenant_id == athlete.tenant_id,
        Guardian.email == email,
    ).first()
    if guardian is None:
        guardian = Guardian(tenant_id=athlete.tenant_id, email=email, name=data.name)
        db.add(guardian)
    guardian.name = data.name
    guardian.notify_email = data.notify_email
    guardian.notify_sms = data.notify_sms
    if data.phone is not None:
        guardian.phone = data.phone
    if data.relationship is not None:
        guardian.relationship_type = data.relationship
    db.flush()

    link = db.query(GuardianAthlete).filter(
        GuardianAthlete.guardian_id == guardian.id,
        GuardianAthlete.athlete_id == athlete.id,
    ).first()
    if link is None:
        link = GuardianAthlete(
            tenant_id=athlete.tenant_id,
            guardian_id=guardian.id,
            athlete_id=athlete.id,
            relationship_type=data.link_relationship or data.relationship,
            is_primary=data.is_primary,
        )
        db.add(link)
        db.flush()
        if link.is_primary:
            _clear_other_primaries(db, athlete.id, link.id)
        log_audit(db, athlete.tenant_id, context.user_id, "guardian.linked", "athlete", athlete.id,
                  {"guardianId": guardian.id})

    db.commit()
    db.refresh(link)
    return _to_response(link)


@router.patch("/{athlete_id}/guardians/{link_id}", response_model=GuardianLinkResponse)
async def update_guardian(
    athlete_id: str,
    link_id: str,
    data: GuardianUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    link = _get_link(db, athlete, link_id)

    changes = {
        field: value for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if not changes:
        raise ValidationError("No changes provided", code="NO_CHANGES")

    for field, column in GUARDIAN_FIELDS.items():
        if field in changes:
            setattr(link.guardian, column, changes[field])
    for field, column in LINK_FIELDS.items():
        if field in changes:
            setattr(link, column, changes[field])
    if changes.get("is_primary"):
        _clear_other_primaries(db, athlete.id, link.id)

    db.commit()
    db.refresh(link)
    return _to_response(link)


@router.delete("/{athlete_id}/guardians/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_guardian(
    athlete_id: str,
    link_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Unlink a guardian; the guardian row goes too once it has no athletes left."""
    athlete = get_scoped_or_404(db, Athlete, athlete_id, context, code="ATHLETE_NOT_FOUND")
    link = _get_link(db, athlete, link_id)
    guardian = link.guardian

    db.delete(link)
    db.flush()
    remaining = db.query(GuardianAthlete).filter(GuardianAthlete.guardian_id == guardian.id).count()
    if remaining == 0:
        db.delete(guardian)
        logger.info(f"Removed guardian {guardian.id} with no athletes left",
                    extra={"tenant_id": athlete.tenant_id})

    log_audit(db, athlete.tenant_id, context.user_id, "guardian.unlinked", "athlete", athlete.id,
              {"guardianId": guardian.id})
    db.commit()
    return None
