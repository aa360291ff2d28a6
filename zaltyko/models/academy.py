"""
Academy and Membership Models

An academy is the unit every other tenant-owned row hangs off.
Several academies of the same owner share one tenant_id.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid


ACADEMY_TYPES = ("artistica", "ritmica", "trampolin", "general", "parkour", "danza")


class Academy(Base):
    __tablename__ = "academies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    academy_type = Column(String(30), nullable=False, default="general")
    country = Column(String(100), nullable=True)
    region = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    # Public directory
    is_public = Column(Boolean, default=True, nullable=False)
    public_description = Column(Text, nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    logo_url = Column(String(500), nullable=True)

    # Set by super admins; suspended academies disappear from the directory
    is_suspended = Column(Boolean, default=False, nullable=False)
    suspended_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = relationship("User", back_populates="owned_academies")
    memberships = relationship("Membership", back_populates="academy", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_academy_tenant_name', 'tenant_id', 'name'),
        Index('idx_academy_public', 'is_public', 'is_suspended'),
    )

    def __repr__(self):
        return f"<Academy {self.name} (tenant={self.tenant_id})>"


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(30), nullable=False, default="owner")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    academy = relationship("Academy", back_populates="memberships")

    __table_args__ = (
        Index('idx_membership_user_academy', 'user_id', 'academy_id', unique=True),
    )
