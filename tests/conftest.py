# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Fixtures shared by every test module.
#
# Key features:
# - Points settings at an in-memory SQLite database before any imports
# - Leaves Redis unreachable so the rate limiter fails open
# - Builds users, academies and tokens without going through the API
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# zaltyko.config caches settings on first import

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:1/0")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_zaltyko")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid

import pytest
from fastapi.testclient import TestClient

import zaltyko.models  # noqa: F401
from zaltyko.database import Base, engine, SessionLocal, get_db
from zaltyko.core.security import get_password_hash, create_user_token
from zaltyko.models.academy import Academy, Membership
from zaltyko.models.user import User, UserRole
from zaltyko.services.plans import ensure_default_plans
from zaltyko.services.subscriptions import ensure_free_subscription
from zaltyko.main import app

TEST_PASSWORD = "password123"

# bcrypt is slow on purpose, hash once
PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def db():
    """Fresh schema per test, with the default plans seeded."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    ensure_default_plans(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """TestClient whose requests share the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db):
    """Create a user row. Emails are unique per call unless given."""

    def factory(role=UserRole.OWNER, tenant_id=None, email=None, can_login=True, name="Test User"):
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:8]}@gimnasia.es",
            hashed_password=PASSWORD_HASH,
            name=name,
            role=role,
            tenant_id=tenant_id,
            can_login=can_login,
            is_active=True,
        )
        db.add(user)
        db.commit()
        return user

    return factory


@pytest.fixture
def make_academy(db):
    """Academy owned by a user, the way POST /api/academies leaves it."""

    def factory(owner, name="Club Gimnasia", tenant_id=None, **fields):
        tenant_id = tenant_id or owner.tenant_id or str(uuid.uuid4())
        academy = Academy(tenant_id=tenant_id, owner_id=owner.id, name=name, **fields)
        db.add(academy)
        db.flush()
        db.add(Membership(user_id=owner.id, academy_id=academy.id, role="owner"))
        if not owner.tenant_id:
            owner.tenant_id = tenant_id
        owner.active_academy_id = owner.active_academy_id or academy.id
        ensure_free_subscription(db, owner.id)
        db.commit()
        return academy

    return factory


@pytest.fixture
def auth_headers():
    def factory(user):
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return factory


@pytest.fixture
def owner(make_user):
    return make_user(role=UserRole.OWNER, name="Marta López")


@pytest.fixture
def academy(make_academy, owner):
    return make_academy(owner, name="Club Gimnasia Norte", city="Madrid", country="España")


@pytest.fixture
def owner_headers(auth_headers, owner, academy):
    """Owner token issued after the academy exists, so it carries the tenant."""
    return auth_headers(owner)


@pytest.fixture
def super_admin(make_user):
    return make_user(role=UserRole.SUPER_ADMIN, name="Platform Admin")
