"""
Pytest configuration and fixtures for CarePublish API tests.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone

# Configure before the application modules read their settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FACILITY_CACHE_PATH", os.path.join(tempfile.mkdtemp(), "facility_cache.json"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from carepublish.database import Base, get_db
from carepublish.limiter import limiter
from carepublish.main import app
from carepublish.models import Course, Facility, Policy, Procedure, User, UserFacility
from carepublish.auth import get_password_hash, create_access_token

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None

PASSWORD = "testpassword123"
CONTENT_MODELS = {"course": Course, "policy": Policy, "procedure": Procedure}


def get_test_db():
    """Get the shared test database session."""
    yield _test_session


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    Base.metadata.create_all(bind=engine)
    _test_session = TestingSessionLocal()
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def facility(db):
    facility = Facility(id="facility-001", name="Riverside General Hospital")
    db.add(facility)
    db.commit()
    return facility


@pytest.fixture(scope="function")
def make_user(db, facility):
    """Factory creating a user with a role at the test facility."""
    counter = {"n": 0}

    def _make_user(role="viewer", first_name=None, last_name=None, email=None, facility_id=facility.id):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            hashed_password=get_password_hash(PASSWORD),
            first_name=first_name,
            last_name=last_name,
            role=role,
            facility_id=facility_id,
            is_active=True,
        )
        db.add(user)
        db.commit()
        if facility_id:
            db.add(UserFacility(user_id=user.id, facility_id=facility_id, role=role))
            db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def test_user(make_user):
    return make_user("viewer", "Test", "User", email="test@example.com")


@pytest.fixture(scope="function")
def admin_user(make_user):
    return make_user("administrator", "Alex", "Morgan")


@pytest.fixture(scope="function")
def manager_user(make_user):
    return make_user("manager", "Sam", "Patel")


@pytest.fixture(scope="function")
def author(make_user):
    return make_user("trainer", "Casey", "Nguyen")


def _bearer(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def headers_for():
    """Build auth headers for any user."""
    return _bearer


@pytest.fixture(scope="function")
def auth_headers(test_user):
    """Get auth headers for the test user."""
    return _bearer(test_user)


@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return _bearer(admin_user)


@pytest.fixture(scope="function")
def make_content(db, facility, author):
    """Factory creating a content row; pending approval unless told otherwise."""
    base_time = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

    def _make_content(content_type="course", minutes=0, **fields):
        model = CONTENT_MODELS[content_type]
        values = {
            "title": f"{content_type.title()} {minutes}",
            "author_id": author.id,
            "approval_status": "pending_approval",
            "submitted_for_approval_at": base_time + timedelta(minutes=minutes),
        }
        if content_type == "course":
            values["facility_id"] = facility.id
        values.update(fields)
        row = model(**values)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _make_content
