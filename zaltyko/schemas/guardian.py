"""
Guardian Schemas

A guardian is returned together with its link to the athlete, so one
item carries both the guardian fields and the link fields.
"""
from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel


class GuardianCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    relationship: Optional[str] = Field(None, max_length=50)
    notify_email: bool = True
    notify_sms: bool = False
    link_relationship: Optional[str] = Field(None, max_length=50)
    is_primary: bool = False


class GuardianUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    relationship: Optional[str] = Field(None, max_length=50)
    notify_email: Optional[bool] = None
    notify_sms: Optional[bool] = None
    link_relationship: Optional[str] = Field(None, max_length=50)
    is_primary: Optional[bool] = None


class GuardianLinkResponse(APIModel):
    link_id: str
    guardian_id: str
    athlete_id: str
    profile_id: Optional[str]
    name: str
    email: str
    phone: Optional[str]
    relationship: Optional[str]
    notify_email: bool
    notify_sms: bool
    link_relationship: Optional[str]
    is_primary: bool
    created_at: datetime
