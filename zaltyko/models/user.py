"""
User Model

A user is both the login identity and the academy-side profile.

IMPORTANT: tenant_id is nullable. A freshly registered owner has no tenant
until they create their first academy (see resolve_tenant_with_update).
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from zaltyko.database import Base
import uuid
import enum


class UserRole(str, enum.Enum):
    """
    User roles.

    SUPER_ADMIN: Platform operator, sees every tenant
    ADMIN: Platform staff, bypasses tenant checks
    OWNER: Owns one or more academies
    COACH: Works inside an academy
    ATHLETE / PARENT: Read-mostly access to their own data
    """
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    OWNER = "owner"
    COACH = "coach"
    ATHLETE = "athlete"
    PARENT = "parent"


# Roles that bypass tenant scoping checks
PLATFORM_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Nullable on purpose: resolved lazily on first academy access
    tenant_id = Column(String(36), nullable=True, index=True)
    active_academy_id = Column(String(36), nullable=True)

    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    role = Column(
        SQLEnum(UserRole),
        default=UserRole.OWNER,
        nullable=False,
        index=True
    )

    # can_login=False blocks API access for everyone except super admins
    can_login = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    owned_academies = relationship("Academy", back_populates="owner")
    subscription = relationship("Subscription", back_populates="user", uselist=False)

    __table_args__ = (
        Index('idx_user_tenant_role', 'tenant_id', 'role'),
    )

    def __repr__(self):
        return f"<User {self.email} (role={self.role}, tenant={self.tenant_id})>"

    @property
    def is_platform_admin(self) -> bool:
        return self.role in PLATFORM_ROLES
