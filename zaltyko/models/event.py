"""
Event and Contact Models

Events are competitions, exhibitions and clinics. Public ones are listed
in the public directory next to public academies.
"""
from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey, Index, Text
from datetime import datetime
from zaltyko.database import Base
import uuid


EVENT_LEVELS = ("internal", "local", "national", "international")


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, default=False, nullable=False)
    level = Column(String(20), nullable=False, default="internal")
    discipline = Column(String(50), nullable=True)
    event_type = Column(String(50), nullable=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    registration_start_date = Column(Date, nullable=True)
    registration_end_date = Column(Date, nullable=True)

    country = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True)

    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_event_tenant_academy', 'tenant_id', 'academy_id'),
        Index('idx_event_public_start', 'is_public', 'start_date'),
    )


class ContactMessage(Base):
    """Message sent from the public directory to an academy."""
    __tablename__ = "contact_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
