# condoadmin/conftest.py
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

# Must be set before condoadmin.core.config builds its Settings instance
TEST_DB_URL = "sqlite+pysqlite:///:memory:"
os.environ["ENV"] = "test"
os.environ["SKIP_ENV_VALIDATION"] = "1"
os.environ["TEST_DATABASE_URL"] = TEST_DB_URL
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

ESSENCIAL_LIMITS = {
    "notifications_limit": 50,
    "warnings_limit": 50,
    "fines_limit": 25,
    "package_notifications_limit": 100,
}


@pytest.fixture(scope="function")
def db():
    """
    Fresh in-memory SQLite database with the default plans seeded.

    init_engine builds a new StaticPool engine, so every test gets its own
    empty database.
    """
    from condoadmin.core.database import init_engine, create_all_tables, drop_all_tables
    from condoadmin.features.audit.service import clear_buffered_audit_logs
    from condoadmin.features.plans.service import seed_plans

    init_engine(TEST_DB_URL)
    create_all_tables()
    seed_plans()
    clear_buffered_audit_logs()
    yield
    drop_all_tables()


@pytest.fixture
def condominium(db):
    """A condominium owned by a síndico with a phone number."""
    from sqlalchemy import insert
    from condoadmin.core.database import condominiums, get_db_session, profiles

    owner_id = str(uuid.uuid4())
    condo_id = str(uuid.uuid4())
    with get_db_session() as session:
        session.execute(insert(profiles).values(
            user_id=owner_id,
            full_name="Maria Souza",
            email="maria@example.com",
            phone="+55 (11) 98765-4321",
        ))
        session.execute(insert(condominiums).values(
            id=condo_id,
            name="Residencial Jardim",
            owner_id=owner_id,
        ))
    return {"id": condo_id, "owner_id": owner_id, "name": "Residencial Jardim"}


@pytest.fixture
def make_subscription(condominium):
    """Factory inserting a subscription row; defaults to a paid essencial plan."""
    from sqlalchemy import insert
    from condoadmin.core.database import get_db_session, subscriptions
    from condoadmin.features.subscriptions.service import require_subscription

    def _make(**overrides):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        values = {
            "id": str(uuid.uuid4()),
            "condominium_id": condominium["id"],
            "plan": "essencial",
            "active": True,
            **ESSENCIAL_LIMITS,
            "current_period_start": start,
            "current_period_end": start + timedelta(days=30),
            "is_trial": False,
            "trial_ends_at": None,
            "is_lifetime": False,
            "created_at": start,
            "updated_at": start,
        }
        values.update(overrides)
        with get_db_session() as session:
            session.execute(insert(subscriptions).values(**values))
        return require_subscription(values["id"])

    return _make


@pytest.fixture
def add_occurrence(condominium):
    """Factory inserting an occurrence row for the test condominium."""
    from sqlalchemy import insert
    from condoadmin.core.database import get_db_session, occurrences

    def _add(type_: str, status: str, created_at: datetime, condominium_id=None):
        with get_db_session() as session:
            session.execute(insert(occurrences).values(
                id=str(uuid.uuid4()),
                condominium_id=condominium_id or condominium["id"],
                type=type_,
                status=status,
                created_at=created_at,
            ))

    return _add


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from condoadmin.main import app

    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": os.environ["ADMIN_API_KEY"], "X-User-Id": "admin-1"}
