"""
Class Endpoints

A class repeats on a set of weekdays (0 = Sunday ... 6 = Saturday).
Sessions are generated from the weekdays ahead of time; changing the
weekdays drops the upcoming scheduled sessions so they can be regenerated.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Iterable, Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.exceptions import ConflictError, ValidationError
from zaltyko.core.limits import assert_within_plan_limits
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Coach
from zaltyko.models.group import Group
from zaltyko.models.schedule import AcademyClass, ClassWeekday, ClassException
from zaltyko.schemas.schedule import (
    ClassCreate,
    ClassUpdate,
    ClassResponse,
    ClassExceptionCreate,
    ClassExceptionResponse,
    GenerationResponse,
)
from zaltyko.services.sessions import generate_class_sessions, delete_future_sessions
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/classes", tags=["classes"])


def _clean_weekdays(weekdays: Iterable[int]) -> list:
    days = sorted(set(weekdays))
    if any(d < 0 or d > 6 for d in days):
        raise ValidationError("Weekdays must be between 0 (Sunday) and 6 (Saturday)", code="INVALID_WEEKDAYS")
    return days


def _validate_refs(db: Session, academy_id: str, group_id: Optional[str], coach_id: Optional[str]) -> None:
    if group_id and not db.query(Group.id).filter(Group.id == group_id, Group.academy_id == academy_id).first():
        raise ValidationError("Group does not belong to this academy", code="INVALID_GROUP")
    if coach_id and not db.query(Coach.id).filter(Coach.id == coach_id, Coach.academy_id == academy_id).first():
        raise ValidationError("Coach does not belong to this academy", code="INVALID_COACH")


def _replace_weekdays(academy_class: AcademyClass, weekdays: list) -> None:
    # Rows for kept days stay put; the (class, weekday) index is unique
    wanted = set(weekdays)
    for row in list(academy_class.weekdays):
        if row.weekday not in wanted:
            academy_class.weekdays.remove(row)
    present = {row.weekday for row in academy_class.weekdays}
    for day in weekdays:
        if day not in present:
            academy_class.weekdays.append(ClassWeekday(tenant_id=academy_class.tenant_id, weekday=day))


def _validate_times(start, end) -> None:
    if start and end and end <= start:
        raise ValidationError("endTime must be after startTime", code="INVALID_TIME_RANGE")


@router.post("", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    assert_within_plan_limits(db, tenant_id, academy.id, "classes")
    _validate_refs(db, academy.id, data.group_id, data.coach_id)
    _validate_times(data.start_time, data.end_time)
    weekdays = _clean_weekdays(data.weekdays)

    academy_class = AcademyClass(tenant_id=tenant_id, **data.model_dump(exclude={"weekdays"}))
    academy_class.weekdays = [ClassWeekday(tenant_id=tenant_id, weekday=d) for d in weekdays]
    db.add(academy_class)
    db.commit()
    db.refresh(academy_class)

    logger.info(f"Class created: {academy_class.id} on weekdays {weekdays}",
                extra={"tenant_id": tenant_id, "academy_id": academy.id})
    return academy_class


@router.get("", response_model=list[ClassResponse])
async def list_classes(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    group_id: Optional[str] = Query(None, alias="groupId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(AcademyClass).filter(AcademyClass.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(AcademyClass.academy_id == academy_id)
    if group_id:
        query = query.filter(AcademyClass.group_id == group_id)
    return query.order_by(AcademyClass.name).all()


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")


@router.patch("/{class_id}", response_model=ClassResponse)
async def update_class(
    class_id: str,
    data: ClassUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Update a class. A weekdays list replaces the current one."""
    academy_class = get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")
    update_data = data.model_dump(exclude_unset=True)
    weekdays = update_data.pop("weekdays", None)

    _validate_refs(db, academy_class.academy_id, update_data.get("group_id"), update_data.get("coach_id"))
    _validate_times(
        update_data.get("start_time", academy_class.start_time),
        update_data.get("end_time", academy_class.end_time),
    )

    for field, value in update_data.items():
        setattr(academy_class, field, value)

    weekdays_changed = False
    if weekdays is not None:
        weekdays = _clean_weekdays(weekdays)
        weekdays_changed = weekdays != sorted(academy_class.weekday_numbers)
        if weekdays_changed:
            _replace_weekdays(academy_class, weekdays)

    db.commit()

    if weekdays_changed:
        removed = delete_future_sessions(db, academy_class.id)
        logger.info(f"Weekdays changed for class {class_id}: {removed} upcoming sessions removed",
                    extra={"tenant_id": academy_class.tenant_id})

    db.refresh(academy_class)
    return academy_class


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy_class = get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")
    db.delete(academy_class)
    db.commit()
    return None


@router.post("/{class_id}/exceptions", response_model=ClassExceptionResponse, status_code=status.HTTP_201_CREATED)
async def create_exception(
    class_id: str,
    data: ClassExceptionCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Mark a date on which the class does not run."""
    academy_class = get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")

    exists = db.query(ClassException).filter(
        ClassException.class_id == academy_class.id,
        ClassException.exception_date == data.exception_date
    ).first()
    if exists:
        raise ConflictError("This date is already an exception", code="EXCEPTION_EXISTS")

    exception = ClassException(
        tenant_id=academy_class.tenant_id,
        class_id=academy_class.id,
        exception_date=data.exception_date,
        reason=data.reason,
    )
    db.add(exception)
    db.commit()
    db.refresh(exception)
    return exception


@router.get("/{class_id}/exceptions", response_model=list[ClassExceptionResponse])
async def list_exceptions(
    class_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy_class = get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")
    return db.query(ClassException).filter(
        ClassException.class_id == academy_class.id
    ).order_by(ClassException.exception_date).all()


@router.post("/{class_id}/generate-sessions", response_model=GenerationResponse)
async def generate_sessions(
    class_id: str,
    weeks: Optional[int] = Query(None, ge=1, le=52),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy_class = get_scoped_or_404(db, AcademyClass, class_id, context, code="CLASS_NOT_FOUND")
    result = generate_class_sessions(db, academy_class.id, weeks_ahead=weeks, tenant_id=academy_class.tenant_id)
    return result.to_dict()
