"""
Academy Schemas
"""
from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel

ACADEMY_TYPE_PATTERN = "^(artistica|ritmica|trampolin|general|parkour|danza)$"


class AcademyCreate(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    academy_type: str = Field("general", pattern=ACADEMY_TYPE_PATTERN)
    country: Optional[str] = Field(None, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    is_public: bool = True
    public_description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    # Platform admins only
    tenant_id: Optional[str] = None
    owner_profile_id: Optional[str] = None


class AcademyUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    academy_type: Optional[str] = Field(None, pattern=ACADEMY_TYPE_PATTERN)
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    is_public: Optional[bool] = None
    public_description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None


class AcademyResponse(APIModel):
    id: str
    tenant_id: str
    owner_id: Optional[str]
    name: str
    academy_type: str
    country: Optional[str]
    region: Optional[str]
    city: Optional[str]
    is_public: bool
    is_suspended: bool
    public_description: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    website: Optional[str]
    logo_url: Optional[str] = None
    created_at: datetime


class PublicAcademyResponse(APIModel):
    """Directory view: no tenant or owner identifiers."""
    id: str
    name: str
    academy_type: str
    country: Optional[str]
    region: Optional[str]
    city: Optional[str]
    public_description: Optional[str]
    contact_email: Optional[str]
    contact_phone: Optional[str]
    website: Optional[str]
    logo_url: Optional[str] = None


class PublicAcademyListResponse(APIModel):
    items: list[PublicAcademyResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class ContactRequest(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    message: str = Field(..., min_length=1, max_length=5000)
