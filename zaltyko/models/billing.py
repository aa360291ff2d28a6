"""
Billing Models

Plans, per-user subscriptions, and the Stripe webhook ledger.

DESIGN: Subscriptions belong to the academy owner (user), not the academy.
Every academy of an owner inherits that owner's plan.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Integer, Text, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid
import enum


class PlanCode(str, enum.Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class Plan(Base):
    __tablename__ = "plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    # Monthly price in cents, as Stripe reports unit_amount
    price_cents = Column(Integer, nullable=False, default=0)
    # None means unlimited
    athlete_limit = Column(Integer, nullable=True)
    academy_limit = Column(Integer, nullable=True)
    stripe_price_id = Column(String(100), nullable=True, unique=True)
    stripe_product_id = Column(String(100), nullable=True)
    currency = Column(String(10), nullable=False, default="eur")
    billing_interval = Column(String(20), nullable=True)
    # Archived plans no longer have an active Stripe price
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Plan {self.code}>"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    plan_id = Column(String(36), ForeignKey("plans.id"), nullable=False)

    status = Column(String(30), nullable=False, default="active")
    stripe_customer_id = Column(String(100), nullable=True, index=True)
    stripe_subscription_id = Column(String(100), nullable=True, unique=True)
    stripe_price_id = Column(String(100), nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    current_period_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="subscription")
    plan = relationship("Plan")

    def __repr__(self):
        return f"<Subscription user={self.user_id} status={self.status}>"


class BillingEventStatus(str, enum.Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    ERROR = "error"


class BillingEvent(Base):
    """
    One row per Stripe event id.

    The unique stripe_event_id makes webhook redelivery idempotent.
    """
    __tablename__ = "billing_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    stripe_event_id = Column(String(100), nullable=False, unique=True)
    type = Column(String(100), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BillingEventStatus.RECEIVED.value)
    payload = Column(JSON, nullable=True)
    academy_id = Column(String(36), nullable=True, index=True)
    tenant_id = Column(String(36), nullable=True, index=True)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class BillingInvoice(Base):
    __tablename__ = "billing_invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    academy_id = Column(String(36), ForeignKey("academies.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), nullable=False, index=True)
    stripe_invoice_id = Column(String(100), nullable=False, unique=True)
    status = Column(String(30), nullable=False)
    amount_due = Column(Integer, nullable=False, default=0)
    amount_paid = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="eur")
    billing_reason = Column(String(100), nullable=True)
    hosted_invoice_url = Column(String(500), nullable=True)
    invoice_pdf = Column(String(500), nullable=True)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    invoice_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_invoice_tenant_academy', 'tenant_id', 'academy_id'),
    )
