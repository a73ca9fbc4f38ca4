"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite)
- Table definitions for the billing slice
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Boolean,
    JSON,
    Numeric,
    Text,
    Index,
    ForeignKey,
    select,
    literal,
)
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func

from condoadmin.core.config import settings


logger = logging.getLogger("condoadmin")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # A single shared connection keeps in-memory databases alive across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
        "pool_recycle": POOL_RECYCLE,
    }


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = create_engine(url, echo=False, **_engine_kwargs(url))

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(select(literal(1)))
        return True
    except Exception as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Plan catalog (reference data, seeded by features.plans.service.seed_plans)
plans = Table(
    'plans',
    metadata,
    Column('slug', String(50), primary_key=True),
    Column('name', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('price', Numeric(10, 2), nullable=False, server_default='0'),
    Column('notifications_limit', Integer, nullable=False, server_default='0'),
    Column('warnings_limit', Integer, nullable=False, server_default='0'),
    Column('fines_limit', Integer, nullable=False, server_default='0'),
    Column('package_notifications_limit', Integer, nullable=False, server_default='0'),
    Column('display_order', Integer, nullable=False, server_default='0'),
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_plans_display_order', 'display_order'),
)

# Profiles (síndicos and other users, owned by the auth platform)
profiles = Table(
    'profiles',
    metadata,
    Column('user_id', String(36), primary_key=True),
    Column('full_name', Text, nullable=True),
    Column('email', String(320), nullable=True),
    Column('phone', String(50), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Condominiums
condominiums = Table(
    'condominiums',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('name', Text, nullable=False),
    Column('owner_id', String(36), ForeignKey('profiles.user_id'), nullable=True, index=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Subscriptions (one billing state per condominium)
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('condominium_id', String(36), ForeignKey('condominiums.id'), nullable=False),
    Column('plan', String(50), ForeignKey('plans.slug'), nullable=False),
    Column('active', Boolean, nullable=False, server_default='1'),
    Column('notifications_limit', Integer, nullable=False, server_default='0'),
    Column('notifications_used', Integer, nullable=False, server_default='0'),
    Column('warnings_limit', Integer, nullable=False, server_default='0'),
    Column('warnings_used', Integer, nullable=False, server_default='0'),
    Column('fines_limit', Integer, nullable=False, server_default='0'),
    Column('fines_used', Integer, nullable=False, server_default='0'),
    Column('package_notifications_limit', Integer, nullable=False, server_default='0'),
    Column('package_notifications_used', Integer, nullable=False, server_default='0'),
    Column('package_notifications_extra', Integer, nullable=False, server_default='0'),
    Column('current_period_start', DateTime(timezone=True), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('is_trial', Boolean, nullable=False, server_default='0'),
    Column('trial_ends_at', DateTime(timezone=True), nullable=True),
    Column('is_lifetime', Boolean, nullable=False, server_default='0'),
    Column('mercadopago_preapproval_id', String(100), nullable=True, unique=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_subscriptions_condominium_id', 'condominium_id'),
)

# Invoices
invoices = Table(
    'invoices',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('subscription_id', String(36), ForeignKey('subscriptions.id'), nullable=False),
    Column('condominium_id', String(36), ForeignKey('condominiums.id'), nullable=False),
    Column('amount', Numeric(10, 2), nullable=False),
    Column('status', String(20), nullable=False, server_default='pending'),
    Column('description', Text, nullable=True),
    Column('due_date', Date, nullable=False),
    Column('period_start', Date, nullable=True),
    Column('period_end', Date, nullable=True),
    Column('paid_at', DateTime(timezone=True), nullable=True),
    Column('payment_method', String(100), nullable=True),
    Column('payment_reference', String(200), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    Index('idx_invoices_condominium_status', 'condominium_id', 'status'),
    Index('idx_invoices_subscription_id', 'subscription_id'),
)

# Occurrences (resident-management events, read-only here)
occurrences = Table(
    'occurrences',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('condominium_id', String(36), ForeignKey('condominiums.id'), nullable=False),
    Column('type', String(20), nullable=False),
    Column('status', String(20), nullable=False),
    Column('title', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_occurrences_condo_type_created', 'condominium_id', 'type', 'created_at'),
)

# Audit log
audit_logs = Table(
    'audit_logs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('table_name', String(100), nullable=False),
    Column('action', String(50), nullable=False),
    Column('record_id', String(36), nullable=True),
    Column('old_data', JSON, nullable=True),
    Column('new_data', JSON, nullable=True),
    Column('user_id', String(36), nullable=True),
    Column('ip_address', String(64), nullable=True),
    Column('user_agent', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_audit_logs_record_id', 'record_id'),
    Index('idx_audit_logs_action', 'action'),
    Index('idx_audit_logs_created_at', 'created_at'),
)

# Payment gateway notifications
webhook_events = Table(
    'webhook_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('provider', String(50), nullable=False, server_default='mercadopago'),
    Column('event_type', String(100), nullable=True, index=True),
    Column('data_id', String(100), nullable=True),
    Column('payload_hash', String(64), nullable=False),
    Column('received_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('processed', Boolean, nullable=False, server_default='0'),
    Column('processed_at', DateTime(timezone=True), nullable=True),
    Column('error', Text, nullable=True),
    Index('idx_webhook_events_data_id', 'data_id'),
    Index('idx_webhook_events_received_at', 'received_at'),
)
