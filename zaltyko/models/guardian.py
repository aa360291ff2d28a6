"""
Guardian Models

Parents and tutors of athletes. One guardian row per tenant and email;
GuardianAthlete links it to each athlete it looks after.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid


class Guardian(Base):
    __tablename__ = "guardians"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    # Set once the guardian accepts a parent invitation
    profile_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    # Stored lowercased
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    relationship_type = Column("relationship", String(50), nullable=True)
    notify_email = Column(Boolean, default=True, nullable=False)
    notify_sms = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    links = relationship("GuardianAthlete", back_populates="guardian", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_guardian_tenant_email', 'tenant_id', 'email', unique=True),
    )

    def __repr__(self):
        return f"<Guardian {self.email} (tenant={self.tenant_id})>"


class GuardianAthlete(Base):
    __tablename__ = "guardian_athletes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    guardian_id = Column(String(36), ForeignKey("guardians.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    relationship_type = Column("relationship", String(50), nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    guardian = relationship("Guardian", back_populates="links")

    __table_args__ = (
        Index('idx_guardian_athlete_unique', 'guardian_id', 'athlete_id', unique=True),
        Index('idx_guardian_athlete_athlete', 'athlete_id'),
    )
