"""
Class Enrollment Endpoints
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_scoped_or_404, require_tenant
from zaltyko.core.exceptions import ConflictError, NotFoundError
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete
from zaltyko.models.schedule import AcademyClass, ClassEnrollment
from zaltyko.schemas.schedule import EnrollmentCreate, EnrollmentResponse

router = APIRouter(prefix="/class-enrollments", tags=["class-enrollments"])


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
async def enroll_athlete(
    data: EnrollmentCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """
    Enroll an athlete in a class.

    The class capacity is a hard limit: 409 CLASS_FULL.
    """
    academy_class = get_scoped_or_404(db, AcademyClass, data.class_id, context, code="CLASS_NOT_FOUND")

    athlete = db.query(Athlete).filter(
        Athlete.id == data.athlete_id,
        Athlete.academy_id == academy_class.academy_id
    ).first()
    if not athlete:
        raise NotFoundError("Athlete not found in this academy", code="ATHLETE_NOT_FOUND")

    already = db.query(ClassEnrollment.id).filter(
        ClassEnrollment.class_id == academy_class.id,
        ClassEnrollment.athlete_id == athlete.id
    ).first()
    if already:
        raise ConflictError("Athlete is already enrolled in this class", code="ALREADY_ENROLLED")

    if academy_class.capacity is not None:
        enrolled = db.query(func.count(ClassEnrollment.id)).filter(
            ClassEnrollment.class_id == academy_class.id
        ).scalar() or 0
        if enrolled >= academy_class.capacity:
            raise ConflictError(
                "The class is full",
                code="CLASS_FULL",
                details={"capacity": academy_class.capacity, "enrolled": enrolled},
            )

    enrollment = ClassEnrollment(
        tenant_id=academy_class.tenant_id,
        academy_id=academy_class.academy_id,
        class_id=academy_class.id,
        athlete_id=athlete.id,
    )
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


@router.get("", response_model=list[EnrollmentResponse])
async def list_enrollments(
    class_id: Optional[str] = Query(None, alias="classId"),
    athlete_id: Optional[str] = Query(None, alias="athleteId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(ClassEnrollment).filter(ClassEnrollment.tenant_id == require_tenant(context))
    if class_id:
        query = query.filter(ClassEnrollment.class_id == class_id)
    if athlete_id:
        query = query.filter(ClassEnrollment.athlete_id == athlete_id)
    return query.order_by(ClassEnrollment.created_at).all()


@router.delete("/{enrollment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_enrollment(
    enrollment_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    enrollment = get_scoped_or_404(db, ClassEnrollment, enrollment_id, context, code="ENROLLMENT_NOT_FOUND")
    db.delete(enrollment)
    db.commit()
    return None
