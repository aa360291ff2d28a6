"""
Profile Schemas
"""
from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from zaltyko.models.user import UserRole
from zaltyko.schemas.common import APIModel


class ProfileResponse(APIModel):
    id: str
    email: EmailStr
    name: Optional[str]
    phone: Optional[str] = None
    role: UserRole
    tenant_id: Optional[str]
    active_academy_id: Optional[str]
    can_login: bool
    is_active: bool
    created_at: datetime


class ProfileUpdate(APIModel):
    """Fields a user may change on their own profile."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    active_academy_id: Optional[str] = None


class ProfileListResponse(APIModel):
    items: list[ProfileResponse]
    total: int
    page: int
    page_size: int


class AdminUserUpdate(APIModel):
    """Super admin changes to any profile."""
    role: Optional[UserRole] = None
    can_login: Optional[bool] = None
    is_active: Optional[bool] = None
