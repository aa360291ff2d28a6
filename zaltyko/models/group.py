"""
Group Models

A group bundles athletes under a coach and carries the monthly fee
used by charge generation.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid


class Group(Base):
    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    coach_id = Column(String(36), ForeignKey("coaches.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    discipline = Column(String(50), nullable=True)
    level = Column(String(50), nullable=True)
    color = Column(String(20), nullable=True)
    # None or 0 means no automatic monthly charge
    monthly_fee_cents = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    members = relationship("GroupAthlete", back_populates="group", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_group_tenant_academy', 'tenant_id', 'academy_id'),
    )

    def __repr__(self):
        return f"<Group {self.name} (academy={self.academy_id})>"


class GroupAthlete(Base):
    __tablename__ = "group_athletes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    group = relationship("Group", back_populates="members")

    __table_args__ = (
        Index('idx_group_athlete_unique', 'group_id', 'athlete_id', unique=True),
    )
