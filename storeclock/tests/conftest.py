"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["TZ"] = "UTC"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from storeclock.main import app  # noqa: E402
from storeclock.db.base import Base  # noqa: E402
from storeclock.core.clock import FixedClock, get_clock  # noqa: E402
from storeclock.core.deps import get_db  # noqa: E402
from storeclock.core.security import hash_password  # noqa: E402
from storeclock.models import Membership, MembershipRole, User  # noqa: E402
from storeclock.services.store_service import create_store  # noqa: E402


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "testpass123"

# Wednesday 2025-01-15 12:00:05 UTC, 5 seconds into a 30-second window
START = datetime(2025, 1, 15, 12, 0, 5, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def clock():
    return FixedClock(START)


@pytest.fixture(scope="function")
def client(db, clock):
    """Test client with database and clock overrides"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, email, name):
    user = User(email=email, name=name, password_hash=hash_password(PASSWORD), active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def owner(db):
    return _make_user(db, "owner@example.com", "Olivia Owner")


@pytest.fixture
def manager(db):
    return _make_user(db, "manager@example.com", "Max Manager")


@pytest.fixture
def worker(db):
    return _make_user(db, "worker@example.com", "Wendy Worker")


@pytest.fixture
def outsider(db):
    return _make_user(db, "outsider@example.com", "Oscar Outsider")


@pytest.fixture
def store(db, owner, manager, worker):
    """Store in Seoul with an owner, a manager and a worker"""
    store = create_store(db, "Main Street", owner, latitude=37.5665, longitude=126.9780)
    db.add(Membership(user_id=manager.id, store_id=store.id, role=MembershipRole.MANAGER.value))
    db.add(Membership(user_id=worker.id, store_id=store.id, role=MembershipRole.WORKER.value))
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture
def other_store(db, outsider):
    return create_store(db, "Other Store", outsider)


@pytest.fixture
def auth_headers(client):
    """Returns a helper that logs a user in and builds the Authorization header"""
    def _auth_headers(user_or_email, password=PASSWORD):
        email = getattr(user_or_email, "email", user_or_email)
        response = client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _auth_headers
