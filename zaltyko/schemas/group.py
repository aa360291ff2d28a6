"""
Group Schemas
"""
from pydantic import Field
from typing import Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel


class GroupCreate(APIModel):
    academy_id: str
    name: str = Field(..., min_length=1, max_length=255)
    discipline: Optional[str] = None
    level: Optional[str] = None
    color: Optional[str] = None
    coach_id: Optional[str] = None
    monthly_fee_cents: Optional[int] = Field(None, ge=0)
    athlete_ids: list[str] = Field(default_factory=list)


class GroupUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    discipline: Optional[str] = None
    level: Optional[str] = None
    color: Optional[str] = None
    coach_id: Optional[str] = None
    monthly_fee_cents: Optional[int] = Field(None, ge=0)
    athlete_ids: Optional[list[str]] = None


class GroupResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    coach_id: Optional[str]
    name: str
    discipline: Optional[str]
    level: Optional[str]
    color: Optional[str]
    monthly_fee_cents: Optional[int]
    created_at: datetime


class GroupSummary(APIModel):
    group: GroupResponse
    athlete_count: int
    coach_name: Optional[str]
    pending_charges: int
    pending_amount_cents: int
