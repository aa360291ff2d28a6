"""
Group Endpoints

Group membership is written from athleteIds. An athlete's primary group
(athlete.group_id) follows the last group it was added to.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional

from zaltyko.database import get_db
from zaltyko.api.deps import get_tenant_context
from zaltyko.api.scoping import get_academy_or_403, get_scoped_or_404, scoped_tenant_for, require_tenant
from zaltyko.core.exceptions import ValidationError
from zaltyko.core.limits import assert_within_plan_limits
from zaltyko.core.tenancy import TenantContext
from zaltyko.models.athlete import Athlete, Coach
from zaltyko.models.charges import Charge
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.schemas.group import GroupCreate, GroupUpdate, GroupResponse, GroupSummary
from zaltyko.services.charges import OPEN_STATUSES
from zaltyko.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


def _validate_coach(db: Session, coach_id: Optional[str], academy_id: str) -> None:
    if not coach_id:
        return
    exists = db.query(Coach.id).filter(Coach.id == coach_id, Coach.academy_id == academy_id).first()
    if not exists:
        raise ValidationError("Coach does not belong to this academy", code="INVALID_COACH")


def _validate_athletes(db: Session, athlete_ids: List[str], academy_id: str) -> List[Athlete]:
    if not athlete_ids:
        return []
    unique_ids = set(athlete_ids)
    athletes = db.query(Athlete).filter(
        Athlete.id.in_(unique_ids),
        Athlete.academy_id == academy_id
    ).all()
    if len(athletes) != len(unique_ids):
        raise ValidationError("Some athletes do not belong to this academy", code="INVALID_ATHLETES")
    return athletes


def _replace_members(db: Session, group: Group, athletes: List[Athlete]) -> None:
    keep = {a.id for a in athletes}
    for member in list(group.members):
        if member.athlete_id not in keep:
            group.members.remove(member)

    current = {m.athlete_id for m in group.members}
    for athlete in athletes:
        if athlete.id not in current:
            group.members.append(GroupAthlete(tenant_id=group.tenant_id, athlete_id=athlete.id))
        athlete.group_id = group.id

    # Athletes that left keep no stale primary group
    leavers = db.query(Athlete).filter(Athlete.group_id == group.id)
    if keep:
        leavers = leavers.filter(~Athlete.id.in_(keep))
    leavers.update({Athlete.group_id: None}, synchronize_session=False)


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    data: GroupCreate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    academy = get_academy_or_403(db, context, data.academy_id)
    tenant_id = scoped_tenant_for(context, academy)

    assert_within_plan_limits(db, tenant_id, academy.id, "groups")
    _validate_coach(db, data.coach_id, academy.id)
    athletes = _validate_athletes(db, data.athlete_ids, academy.id)

    group = Group(tenant_id=tenant_id, **data.model_dump(exclude={"athlete_ids"}))
    db.add(group)
    db.flush()
    _replace_members(db, group, athletes)
    db.commit()
    db.refresh(group)

    logger.info(f"Group created: {group.id} with {len(athletes)} athletes",
                extra={"tenant_id": tenant_id, "academy_id": academy.id})
    return group


@router.get("", response_model=list[GroupResponse])
async def list_groups(
    academy_id: Optional[str] = Query(None, alias="academyId"),
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    query = db.query(Group).filter(Group.tenant_id == require_tenant(context))
    if academy_id:
        query = query.filter(Group.academy_id == academy_id)
    return query.order_by(Group.name).all()


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    return get_scoped_or_404(db, Group, group_id, context, code="GROUP_NOT_FOUND")


@router.get("/{group_id}/summary", response_model=GroupSummary)
async def group_summary(
    group_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    """Roster size, coach and open charges of the group's athletes."""
    group = get_scoped_or_404(db, Group, group_id, context, code="GROUP_NOT_FOUND")

    athlete_ids = [m.athlete_id for m in group.members]
    coach = db.query(Coach).filter(Coach.id == group.coach_id).first() if group.coach_id else None

    pending_count, pending_amount = 0, 0
    if athlete_ids:
        pending_count, pending_amount = db.query(
            func.count(Charge.id), func.coalesce(func.sum(Charge.amount_cents), 0)
        ).filter(
            Charge.academy_id == group.academy_id,
            Charge.athlete_id.in_(athlete_ids),
            Charge.status.in_(OPEN_STATUSES),
        ).one()

    return GroupSummary(
        group=GroupResponse.model_validate(group),
        athlete_count=len(athlete_ids),
        coach_name=coach.name if coach else None,
        pending_charges=pending_count,
        pending_amount_cents=pending_amount,
    )


@router.patch("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    data: GroupUpdate,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    group = get_scoped_or_404(db, Group, group_id, context, code="GROUP_NOT_FOUND")
    update_data = data.model_dump(exclude_unset=True)
    athlete_ids = update_data.pop("athlete_ids", None)

    if "coach_id" in update_data:
        _validate_coach(db, update_data["coach_id"], group.academy_id)

    for field, value in update_data.items():
        setattr(group, field, value)

    if athlete_ids is not None:
        _replace_members(db, group, _validate_athletes(db, athlete_ids, group.academy_id))

    db.commit()
    db.refresh(group)
    return group


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: str,
    context: TenantContext = Depends(get_tenant_context),
    db: Session = Depends(get_db)
):
    group = get_scoped_or_404(db, Group, group_id, context, code="GROUP_NOT_FOUND")
    db.query(Athlete).filter(Athlete.group_id == group.id).update(
        {Athlete.group_id: None}, synchronize_session=False
    )
    db.delete(group)
    db.commit()
    return None
