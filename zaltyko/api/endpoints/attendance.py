"""
Attendance Endpoints

One record per (session, athlete). Posting again for the same athlete
overwrites the previous status.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_scoped_or_404
from zaltyko.core.exceptions import ValidationError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.schedule import AcademyClass, AttendanceRecord, ClassSession
from zaltyko.schemas.schedule import AttendanceBulkRequest, AttendanceResponse
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post("", response_model=list[AttendanceResponse])
async def record_attendance(
    data: AttendanceBulkRequest,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    session = get_scoped_or_404(db, ClassSession, data.session_id, context, code="SESSION_NOT_FOUND")
    academy_id = db.query(AcademyClass.academy_id).filter(AcademyClass.id == session.class_id).scalar()

    athlete_ids = {e.athlete_id for e in data.entries}
    known = {
        a_id for (a_id,) in db.query(Athlete.id).filter(
            Athlete.id.in_(athlete_ids),
            Athlete.academy_id == academy_id
        ).all()
    }
    unknown = athlete_ids - known
    if unknown:
        raise ValidationError(
            "Some athletes do not belong to this academy",
            code="INVALID_ATHLETES",
            details={"athleteIds": sorted(unknown)},
        )

    existing = {
        r.athlete_id: r for r in db.query(AttendanceRecord).filter(
            AttendanceRecord.session_id == session.id,
            AttendanceRecord.athlete_id.in_(athlete_ids)
        ).all()
    }

    records = []
    now = datetime.utcnow()
    for entry in data.entries:
        record = existing.get(entry.athlete_id)
        if record is None:
            record = AttendanceRecord(
                tenant_id=session.tenant_id,
                session_id=session.id,
                athlete_id=entry.athlete_id,
            )
            db.add(record)
            existing[entry.athlete_id] = record
        record.status = entry.status
        record.notes = entry.notes
        record.recorded_at = now
        records.append(record)

    db.commit()
    logger.info(f"Attendance recorded for session {session.id}: {len(records)} entries",
                extra={"tenant_id": session.tenant_id})
    return records


@router.get("", response_model=list[AttendanceResponse])
async def list_attendance(
    session_id: str = Query(..., alias="sessionId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    session = get_scoped_or_404(db, ClassSession, session_id, context, code="SESSION_NOT_FOUND")
    return db.query(AttendanceRecord).filter(
        AttendanceRecord.session_id == session.id
    ).order_by(AttendanceRecord.recorded_at).all()
