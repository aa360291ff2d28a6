"""
Class, Session, Enrollment and Attendance Schemas
"""
from pydantic import Field, AliasChoices
from typing import Optional
from datetime import date, datetime, time

from zaltyko.schemas.common import APIModel


class ClassCreate(APIModel):
    academy_id: str
    name: str = Field(..., min_length=1, max_length=255)
    weekdays: list[int] = Field(default_factory=list)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = Field(None, ge=1)
    auto_generate_sessions: bool = True
    group_id: Optional[str] = None
    coach_id: Optional[str] = None


class ClassUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    weekdays: Optional[list[int]] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = Field(None, ge=1)
    auto_generate_sessions: Optional[bool] = None
    group_id: Optional[str] = None
    coach_id: Optional[str] = None


class ClassResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    group_id: Optional[str]
    coach_id: Optional[str]
    name: str
    # Read from AcademyClass.weekday_numbers, not the relationship
    weekdays: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("weekday_numbers", "weekdays"),
    )
    start_time: Optional[time]
    end_time: Optional[time]
    capacity: Optional[int]
    auto_generate_sessions: bool
    created_at: datetime


class ClassExceptionCreate(APIModel):
    exception_date: date
    reason: Optional[str] = Field(None, max_length=255)


class ClassExceptionResponse(APIModel):
    id: str
    class_id: str
    exception_date: date
    reason: Optional[str]


class GenerationResponse(APIModel):
    generated: int
    skipped: int
    errors: list[str]


class SessionCreate(APIModel):
    class_id: str
    session_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    coach_id: Optional[str] = None
    status: str = Field("scheduled", pattern="^(scheduled|completed|cancelled)$")
    notes: Optional[str] = None


class SessionUpdate(APIModel):
    session_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    coach_id: Optional[str] = None
    status: Optional[str] = Field(None, pattern="^(scheduled|completed|cancelled)$")
    notes: Optional[str] = None


class SessionResponse(APIModel):
    id: str
    tenant_id: str
    class_id: str
    coach_id: Optional[str]
    session_date: date
    start_time: Optional[time]
    end_time: Optional[time]
    status: Optional[str]
    notes: Optional[str]


class EnrollmentCreate(APIModel):
    class_id: str
    athlete_id: str


class EnrollmentResponse(APIModel):
    id: str
    tenant_id: str
    academy_id: str
    class_id: str
    athlete_id: str
    created_at: datetime


ATTENDANCE_STATUS_PATTERN = "^(present|absent|late|excused)$"


class AttendanceEntry(APIModel):
    athlete_id: str
    status: str = Field(..., pattern=ATTENDANCE_STATUS_PATTERN)
    notes: Optional[str] = None


class AttendanceBulkRequest(APIModel):
    session_id: str
    entries: list[AttendanceEntry] = Field(..., min_length=1)


class AttendanceResponse(APIModel):
    id: str
    session_id: str
    athlete_id: str
    status: str
    notes: Optional[str]
    recorded_at: datetime
