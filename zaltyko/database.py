"""
Database Configuration and Session Management

SQLAlchemy setup with connection pooling for PostgreSQL.
SQLite URLs (local dev and tests) share a single connection so that
in-memory databases survive across sessions.

NOTE: Tenant scoping is not done here. Every tenant-owned query filters
on tenant_id explicitly in the service or endpoint that issues it.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from zaltyko.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=settings.DEBUG,
    )
else:
    # TRADEOFF: Larger pool = more connections = more memory but better concurrency
    engine = create_engine(
        settings.DATABASE_URL,
        poolclass=QueuePool,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )

# expire_on_commit=False keeps attributes readable after commit without a reload
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)

Base = declarative_base()


@event.listens_for(engine, "connect")
def configure_connection(dbapi_connection, connection_record):
    """Set connection-level configuration on new connections."""
    cursor = dbapi_connection.cursor()
    if IS_SQLITE:
        cursor.execute("PRAGMA foreign_keys=ON")
    else:
        # Billing periods and session dates are computed in UTC
        cursor.execute("SET TIME ZONE 'UTC'")
    cursor.close()
    logger.debug("New database connection established")


def get_db() -> Session:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create all tables.

    Development and tests only. Production schemas are managed with migrations.
    """
    import zaltyko.models  # noqa: F401  registers every model on Base.metadata

    logger.warning("init_db() called - use migrations in production!")
    Base.metadata.create_all(bind=engine)
