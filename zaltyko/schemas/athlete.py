"""
Athlete and Coach Schemas
"""
from pydantic import EmailStr, Field
from typing import Optional
from datetime import date, datetime

from zaltyko.schemas.common import APIModel

ATHLETE_STATUS_PATTERN = "^(active|inactive|trial|injured)$"


class AthleteCreate(APIModel):
    academy_id: str
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    birth_date: Optional[date] = None
    level: Optional[str] = Field(None, max_length=50)
    status: str = Field("active", pattern=ATHLETE_STATUS_PATTERN)
    group_id: Optional[str] = None
    notes: Optional[str] = None


class AthleteUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    birth_date: Optional[date] = None
    level: Optional[str] = None
    status: Optional[str] = Field(None, pattern=ATHLETE_STATUS_PATTERN)
    group_id: Optional[str] = None
    notes: Optional[str] = None


class AthleteResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    group_id: Optional[str]
    name: str
    email: Optional[str]
    birth_date: Optional[date]
    level: Optional[str]
    status: str
    notes: Optional[str] = None
    created_at: datetime


class AthleteListResponse(APIModel):
    items: list[AthleteResponse]
    total: int
    page: int
    limit: int


class AthleteImportRequest(APIModel):
    academy_id: str
    csv: str = Field(..., min_length=1)


class AthleteImportResponse(APIModel):
    created: int
    skipped: int
    total_rows: int
    errors: list[str]


class CoachCreate(APIModel):
    academy_id: str
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    specialty: Optional[str] = Field(None, max_length=100)
    user_id: Optional[str] = None


class CoachUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    specialty: Optional[str] = None


class CoachResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    user_id: Optional[str]
    name: str
    email: Optional[str]
    phone: Optional[str]
    specialty: Optional[str]
    created_at: datetime
