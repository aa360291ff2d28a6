"""
Notification, Invitation and Alert Schemas
"""
from pydantic import EmailStr, Field
from typing import Any, Optional
from datetime import datetime

from zaltyko.schemas.common import APIModel


class NotificationResponse(APIModel):
    id: str
    type: str
    title: str
    message: Optional[str]
    data: Optional[dict[str, Any]]
    read: bool
    read_at: Optional[datetime]
    created_at: datetime


class NotificationListResponse(APIModel):
    items: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(APIModel):
    updated: int


class InvitationCreate(APIModel):
    academy_id: str
    email: EmailStr
    role: str = Field(..., pattern="^(coach|parent)$")
    expires_in_days: int = Field(7, ge=1, le=30)


class InvitationResponse(APIModel):
    ok: bool = True
    invitation_url: str
    expires_at: datetime


class InvitationComplete(APIModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, min_length=2, max_length=120)


class OkResponse(APIModel):
    ok: bool = True


class EventNotifyRequest(APIModel):
    type: str = Field(..., pattern="^(internal_staff|city|province|country)$")


class EventNotifyResponse(APIModel):
    ok: bool = True
    type: str
    recipients: int
    sent: int
    errors: list[str]


class AlertCounts(APIModel):
    payment_alerts: int = 0
    attendance_alerts: int = 0
    capacity_alerts: int = 0


class DailyAlertsResponse(APIModel):
    ok: bool = True
    academies_processed: int
    results: AlertCounts
    notifications_created: int
    emails_sent: int
    errors: list[str]
