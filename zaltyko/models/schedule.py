"""
Schedule Models

Classes are weekly templates (weekdays + times). Sessions are the concrete
dated occurrences generated from them. Attendance is recorded per session.

NOTE: Weekdays use 0 = Sunday ... 6 = Saturday, matching what the
front-end sends. Python's date.weekday() is 0 = Monday, convert with
(d.weekday() + 1) % 7.
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, Time, DateTime, ForeignKey, Index, Text
)
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid


SESSION_STATUSES = ("scheduled", "completed", "cancelled")
ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")


class AcademyClass(Base):
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)
    coach_id = Column(String(36), ForeignKey("coaches.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    capacity = Column(Integer, nullable=True)
    auto_generate_sessions = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    weekdays = relationship(
        "ClassWeekday", back_populates="academy_class", cascade="all, delete-orphan"
    )
    exceptions = relationship(
        "ClassException", back_populates="academy_class", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_class_tenant_academy', 'tenant_id', 'academy_id'),
    )

    def __repr__(self):
        return f"<AcademyClass {self.name} (academy={self.academy_id})>"

    @property
    def weekday_numbers(self) -> list[int]:
        return sorted(w.weekday for w in self.weekdays)


class ClassWeekday(Base):
    __tablename__ = "class_weekdays"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    weekday = Column(Integer, nullable=False)

    academy_class = relationship("AcademyClass", back_populates="weekdays")

    __table_args__ = (
        Index('idx_class_weekday_unique', 'class_id', 'weekday', unique=True),
    )


class ClassException(Base):
    """A date on which a class does not run (holiday, closure)."""
    __tablename__ = "class_exceptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    exception_date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    academy_class = relationship("AcademyClass", back_populates="exceptions")

    __table_args__ = (
        Index('idx_class_exception_unique', 'class_id', 'exception_date', unique=True),
    )


class ClassSession(Base):
    __tablename__ = "class_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    coach_id = Column(String(36), ForeignKey("coaches.id", ondelete="SET NULL"), nullable=True)

    session_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    status = Column(String(20), nullable=True, default="scheduled")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_session_class_date', 'class_id', 'session_date'),
        Index('idx_session_tenant_date', 'tenant_id', 'session_date'),
    )


class ClassEnrollment(Base):
    __tablename__ = "class_enrollments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_enrollment_unique', 'class_id', 'athlete_id', unique=True),
    )


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("class_sessions.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_attendance_session_athlete', 'session_id', 'athlete_id', unique=True),
    )
