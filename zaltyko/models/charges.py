"""
Academy Billing Models

What an academy charges its own athletes: billing items (price list),
charges (one per athlete and period), discount codes and scholarships.

NOTE: Money is stored in cents as integers. Discounts keep euros as
decimals because percentage caps are configured in euros.
"""
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, DateTime, ForeignKey, Index, Text, Numeric
)
from datetime import datetime
from zaltyko.database import Base
import uuid


CHARGE_STATUSES = ("pending", "paid", "overdue", "cancelled", "partial")
PAYMENT_METHODS = ("cash", "transfer", "bizum", "card_manual", "other")


class BillingItem(Base):
    __tablename__ = "billing_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    periodicity = Column(String(20), nullable=False, default="monthly")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Charge(Base):
    __tablename__ = "charges"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    billing_item_id = Column(String(36), ForeignKey("billing_items.id", ondelete="SET NULL"), nullable=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)

    label = Column(String(255), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")
    # YYYY-MM
    period = Column(String(7), nullable=False)
    due_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_charge_academy_period', 'academy_id', 'period'),
        Index('idx_charge_athlete_period', 'athlete_id', 'period'),
        Index('idx_charge_tenant_status', 'tenant_id', 'status'),
    )

    def __repr__(self):
        return f"<Charge {self.label} {self.amount_cents} ({self.status})>"


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(50), nullable=True)
    name = Column(String(255), nullable=False)
    # percentage | fixed
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    # Cap in euros for percentage discounts
    max_discount = Column(Numeric(10, 2), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_discount_academy_code', 'academy_id', 'code'),
    )


class Scholarship(Base):
    __tablename__ = "scholarships"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), nullable=False, index=True)
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    athlete_id = Column(String(36), ForeignKey("athletes.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_scholarship_athlete', 'academy_id', 'athlete_id'),
    )
