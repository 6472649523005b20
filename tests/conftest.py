"""
Pytest configuration and shared fixtures for testing the Intranet Portal API.
"""
import os
import tempfile
from datetime import datetime, timedelta

# Settings are read once at import time, so the test environment must be in
# place before anything from ``intranet`` is imported.
os.environ.setdefault("INTRANET_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("INTRANET_BCRYPT_ROUNDS", "4")
os.environ.setdefault("INTRANET_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("INTRANET_REFRESH_COOKIE_SECURE", "false")
os.environ.setdefault("INTRANET_ENVIRONMENT", "test")
os.environ.setdefault("INTRANET_LOG_LEVEL", "WARNING")
os.environ.setdefault("INTRANET_UPLOAD_DIR", tempfile.mkdtemp(prefix="intranet-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from intranet import models
from intranet.database import Base, create_db_engine
from intranet.deps import get_db
from intranet.main import app
from intranet.security import get_password_hash
from intranet.timeutils import utcnow

API = "/api/v1"

# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_db_engine(SQLALCHEMY_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with the test database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session, username, password, role, display_name, email, is_active=True):
    user = models.User(
        username=username,
        hashed_password=get_password_hash(password),
        display_name=display_name,
        email=email,
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    """
    Create an admin user for testing.
    """
    return _make_user(
        db_session, "admin", "adminpass123", models.UserRole.ADMIN, "Admin User", "admin@example.com"
    )


@pytest.fixture
def regular_user(db_session):
    """
    Create a regular user for testing.
    """
    return _make_user(
        db_session,
        "regularuser",
        "regularpass123",
        models.UserRole.USER,
        "Regular User",
        "regular@example.com",
    )


@pytest.fixture
def other_user(db_session):
    """
    Create a second regular user for ownership checks.
    """
    return _make_user(
        db_session, "otheruser", "otherpass123", models.UserRole.USER, "Other User", "other@example.com"
    )


def login(client, username: str, password: str):
    return client.post(f"{API}/auth/login", json={"username": username, "password": password})


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return login(client, "admin", "adminpass123").json()["accessToken"]


@pytest.fixture
def regular_token(client, regular_user):
    """
    Get a regular user authentication token.
    """
    return login(client, "regularuser", "regularpass123").json()["accessToken"]


@pytest.fixture
def other_token(client, other_user):
    """
    Get the second regular user's authentication token.
    """
    return login(client, "otheruser", "otherpass123").json()["accessToken"]


@pytest.fixture
def sample_room(db_session):
    """
    Create a sample room with capacity 10.
    """
    room = models.MeetingRoom(
        name="Conference Room A",
        capacity=10,
        location="Building 1, Floor 2",
        amenities=["Projector", "Whiteboard"],
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_rooms(db_session):
    """
    Create multiple sample rooms, one of them inactive.
    """
    rooms = [
        models.MeetingRoom(name="Small Meeting Room", capacity=4, location="Building 1, Floor 1"),
        models.MeetingRoom(name="Large Conference Hall", capacity=50, location="Building 2, Floor 3"),
        models.MeetingRoom(name="Board Room", capacity=12, location="Building 1, Floor 3", is_active=False),
    ]
    for room in rooms:
        db_session.add(room)
    db_session.commit()
    for room in rooms:
        db_session.refresh(room)
    return rooms


@pytest.fixture
def tomorrow():
    """
    Midnight (UTC) tomorrow; reservation tests build times from it.
    """
    return (utcnow() + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


@pytest.fixture
def sample_reservation(db_session, regular_user, sample_room, tomorrow):
    """
    A Confirmed 09:00-10:00 reservation owned by the regular user.
    """
    reservation = models.Reservation(
        meeting_room_id=sample_room.id,
        user_id=regular_user.id,
        start_time=tomorrow.replace(hour=9),
        end_time=tomorrow.replace(hour=10),
        purpose="Standup",
        attendee_count=5,
        status=models.ReservationStatus.CONFIRMED,
        created_by=regular_user.id,
    )
    db_session.add(reservation)
    db_session.commit()
    db_session.refresh(reservation)
    return reservation


@pytest.fixture
def draft_article(db_session, regular_user):
    """
    A Draft article authored by the regular user.
    """
    article = models.ContentArticle(
        title="Welcome",
        content="Hello intranet",
        author_id=regular_user.id,
        publication_status=models.PublicationStatus.DRAFT,
    )
    db_session.add(article)
    db_session.commit()
    db_session.refresh(article)
    return article


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}


def iso(value: datetime) -> str:
    return value.isoformat()
