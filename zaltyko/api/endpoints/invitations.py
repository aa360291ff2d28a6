"""
Invitation Endpoints

Owners invite coaches and parents to an academy. The invitee follows the
emailed link and completes the invitation with a password, which creates
(or joins) their profile in the academy's tenant.

SECURITY: /invitations/complete is unauthenticated; the token is the only
credential, so it is single use and expires.
"""
from datetime import datetime, timedelta
import html as html_lib
import secrets

import httpx
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from zaltyko.database import get_db
from zaltyko.config import get_settings
from zaltyko.api.deps import require_roles
from zaltyko.api.scoping import get_academy_or_403
from zaltyko.core.exceptions import ConflictError, GoneError, NotFoundError
from zaltyko.core.security import get_password_hash
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.academy import Membership
from zaltyko.models.guardian import Guardian
from zaltyko.models.notification import Invitation
from zaltyko.models.user import User, UserRole, PLATFORM_ROLES
from zaltyko.schemas.notification import (
    InvitationCreate, InvitationResponse, InvitationComplete, OkResponse
)
from zaltyko.services.audit import log_audit
from zaltyko.services.email import send_email
from zaltyko.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])

# Existing profiles with these roles keep them when accepting an invitation
KEEP_ROLE = PLATFORM_ROLES + (UserRole.OWNER,)


def invitation_url(invitation: Invitation) -> str:
    path = "/invite/parent" if invitation.role == "parent" else "/invite/accept"
    return f"{get_settings().APP_URL}{path}?token={invitation.token}"


def _send_invitation_email(invitation: Invitation, academy_name: str) -> None:
    url = invitation_url(invitation)
    role_label = "entrenador/a" if invitation.role == "coach" else "familia"
    subject = f"Invitación a {academy_name}"
    html = (
        f"<h2>Te han invitado a {html_lib.escape(academy_name)}</h2>"
        f"<p>Has sido invitado como {role_label}.</p>"
        f"<p><a href=\"{html_lib.escape(url)}\">Aceptar invitación</a></p>"
    )
    try:
        send_email(invitation.email, subject, html, text=f"Acepta la invitación: {url}")
    except httpx.HTTPError as e:
        logger.error(f"Error sending invitation {invitation.id}: {e}",
                     extra={"tenant_id": invitation.tenant_id})


@router.post("", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    data: InvitationCreate,
    context: TenantContext = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN, UserRole.SUPER_ADMIN)),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    email = data.email.strip().lower()

    # A new invitation replaces pending ones for the same person and academy
    db.query(Invitation).filter(
        Invitation.academy_id == academy.id,
        Invitation.email == email,
        Invitation.status == "pending",
    ).update({"status": "revoked"}, synchronize_session=False)

    invitation = Invitation(
        tenant_id=academy.tenant_id,
        academy_id=academy.id,
        invited_by=context.user_id,
        email=email,
        role=data.role,
        token=secrets.token_urlsafe(32),
        expires_at=datetime.utcnow() + timedelta(days=data.expires_in_days),
    )
    db.add(invitation)
    db.flush()
    log_audit(db, academy.tenant_id, context.user_id, "invitation.created", "invitation", invitation.id,
              {"email": email, "role": data.role})
    db.commit()

    _send_invitation_email(invitation, academy.name)
    return InvitationResponse(invitation_url=invitation_url(invitation), expires_at=invitation.expires_at)


@router.post("/complete", response_model=OkResponse)
async def complete_invitation(data: InvitationComplete, db: Session = Depends(get_db)):
    invitation = db.query(Invitation).filter(Invitation.token == data.token).first()
    if not invitation:
        log_security_event("invitation_token_unknown", {"token_prefix": data.token[:6]}, logger)
        raise NotFoundError("Invitation not found", code="INVITATION_NOT_FOUND")
    if invitation.status != "pending":
        raise ConflictError("Invitation already used", code="INVITATION_ALREADY_USED")
    if invitation.is_expired:
        raise GoneError("Invitation expired", code="INVITATION_EXPIRED")

    user = db.query(User).filter(User.email == invitation.email).first()
    if user and user.tenant_id and user.tenant_id != invitation.tenant_id:
        raise ConflictError("This email belongs to another organization", code="USER_IN_OTHER_TENANT")

    role = UserRole(invitation.role)
    if user is None:
        user = User(
            email=invitation.email,
            name=data.name or invitation.email.split("@")[0],
            role=role,
        )
        db.add(user)
    else:
        if data.name:
            user.name = data.name
        if user.role not in KEEP_ROLE:
            user.role = role
    user.hashed_password = get_password_hash(data.password)
    user.tenant_id = invitation.tenant_id
    user.active_academy_id = invitation.academy_id
    db.flush()

    membership = db.query(Membership).filter(
        Membership.user_id == user.id,
        Membership.academy_id == invitation.academy_id,
    ).first()
    if membership is None:
        db.add(Membership(user_id=user.id, academy_id=invitation.academy_id, role=invitation.role))

    if role == UserRole.PARENT:
        db.query(Guardian).filter(
            Guardian.tenant_id == invitation.tenant_id,
            Guardian.email == invitation.email,
        ).update({"profile_id": user.id}, synchronize_session=False)

    invitation.status = "accepted"
    invitation.accepted_at = datetime.utcnow()
    log_audit(db, invitation.tenant_id, user.id, "invitation.accepted", "invitation", invitation.id,
              {"role": invitation.role})
    db.commit()
    return OkResponse()
