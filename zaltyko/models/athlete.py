"""
Athlete and Coach Models

Both are scoped by tenant_id and academy_id.
"""
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Index, Text
from datetime import datetime
from zaltyko.database import Base
import uuid


ATHLETE_STATUSES = ("active", "inactive", "trial", "injured")


class Athlete(Base):
    __tablename__ = "athletes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    # Primary group; GroupAthlete mirrors it for group rosters
    group_id = Column(String(36), ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    birth_date = Column(Date, nullable=True)
    level = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="active")
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_athlete_tenant_academy', 'tenant_id', 'academy_id'),
        Index('idx_athlete_academy_status', 'academy_id', 'status'),
    )

    def __repr__(self):
        return f"<Athlete {self.name} (academy={self.academy_id})>"


class Coach(Base):
    __tablename__ = "coaches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    specialty = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_coach_tenant_academy', 'tenant_id', 'academy_id'),
    )
