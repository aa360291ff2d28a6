"""
Event Schemas
"""
from pydantic import EmailStr, Field
from typing import Optional
from datetime import date, datetime

from zaltyko.schemas.common import APIModel

EVENT_LEVEL_PATTERN = "^(internal|local|national|international)$"


class EventCreate(APIModel):
    academy_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: bool = False
    level: str = Field("internal", pattern=EVENT_LEVEL_PATTERN)
    discipline: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    registration_start_date: Optional[date] = None
    registration_end_date: Optional[date] = None
    country: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None


class EventUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: Optional[bool] = None
    level: Optional[str] = Field(None, pattern=EVENT_LEVEL_PATTERN)
    discipline: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    registration_start_date: Optional[date] = None
    registration_end_date: Optional[date] = None
    country: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None


class EventResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    title: str
    description: Optional[str]
    is_public: bool
    level: str
    discipline: Optional[str]
    event_type: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    registration_start_date: Optional[date]
    registration_end_date: Optional[date]
    country: Optional[str]
    province: Optional[str]
    city: Optional[str]
    location: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    website: Optional[str]
    created_at: datetime


class PublicEventResponse(APIModel):
    """Event fields shown to anonymous visitors."""
    id: str
    academy_id: str
    title: str
    description: Optional[str]
    level: str
    discipline: Optional[str]
    event_type: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    registration_start_date: Optional[date]
    registration_end_date: Optional[date]
    country: Optional[str]
    province: Optional[str]
    city: Optional[str]
    location: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    website: Optional[str]


class EventListResponse(APIModel):
    items: list[EventResponse]
    total: int
    page: int
    limit: int


class PublicEventListResponse(APIModel):
    items: list[PublicEventResponse]
    total: int
    page: int
    limit: int
