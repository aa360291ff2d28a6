"""
Class Session Endpoints

Sessions are concrete dated occurrences of a class, normally created by
session generation. Manual creation covers one-off extra sessions.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_scoped_or_404, require_tenant
from zaltyko.core.exceptions import ConflictError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.schedule import AcademyClass, ClassSession
from zaltyko.schemas.schedule import SessionCreate, SessionUpdate, SessionResponse

router = APIRouter(prefix="/class-sessions", tags=["class-sessions"])


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    class_id: Optional[str] = Query(None, alias="classId"),
    academy_id: Optional[str] = Query(None, alias="academyId"),
    coach_id: Optional[str] = Query(None, alias="coachId"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    limit: int = Query(200, ge=1, le=1000),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(ClassSession).filter(ClassSession.tenant_id == require_tenant(context))

    if class_id:
        query = query.filter(ClassSession.class_id == class_id)
    if academy_id:
        query = query.join(AcademyClass, AcademyClass.id == ClassSession.class_id).filter(
            AcademyClass.academy_id == academy_id
        )
    if coach_id:
        query = query.filter(ClassSession.coach_id == coach_id)
    if date_from:
        query = query.filter(ClassSession.session_date >= date_from)
    if date_to:
        query = query.filter(ClassSession.session_date <= date_to)

    return query.order_by(ClassSession.session_date, ClassSession.start_time).limit(limit).all()


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy_class = get_scoped_or_404(db, AcademyClass, data.class_id, context, code="CLASS_NOT_FOUND")

    exists = db.query(ClassSession.id).filter(
        ClassSession.class_id == academy_class.id,
        ClassSession.session_date == data.session_date
    ).first()
    if exists:
        raise ConflictError("The class already has a session on this date", code="SESSION_EXISTS")

    session = ClassSession(
        tenant_id=academy_class.tenant_id,
        class_id=academy_class.id,
        coach_id=data.coach_id or academy_class.coach_id,
        session_date=data.session_date,
        start_time=data.start_time or academy_class.start_time,
        end_time=data.end_time or academy_class.end_time,
        status=data.status,
        notes=data.notes,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, ClassSession, session_id, context, code="SESSION_NOT_FOUND")


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    data: SessionUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    session = get_scoped_or_404(db, ClassSession, session_id, context, code="SESSION_NOT_FOUND")
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(session, field, value)
    db.commit()
    db.refresh(session)
    return session
