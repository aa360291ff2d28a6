"""
Notification and Invitation Models

Notifications are in-app messages for one user, written by the daily
alerts job. Invitations bring coaches and parents into an academy.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Text, JSON
from datetime import datetime
from zaltyko.database import Base
import uuid


NOTIFICATION_TYPES = ("payment_overdue", "attendance_low", "capacity_alert")
INVITATION_ROLES = ("coach", "parent")
INVITATION_STATUSES = ("pending", "accepted", "revoked")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    # Row the alert is about (charge, athlete, class); one alert per row and day
    resource_id = Column(String(36), nullable=True)
    data = Column(JSON, nullable=True)

    read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_notification_user_read', 'user_id', 'read'),
        Index('idx_notification_user_created', 'user_id', 'created_at'),
    )


class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    token = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(String(20), nullable=False, default="pending")

    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_expired(self) -> bool:
        return self.expires_at < datetime.utcnow()
