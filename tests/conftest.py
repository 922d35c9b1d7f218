"""
Shared test configuration and fixtures
"""
import pytest
import os
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["SKIP_SCHEDULER"] = "true"  # Skip scheduler during tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
for key in (
    "ADMIN_EMAIL",
    "ADMIN_PASSWORD",
    "STRIPE_SECRET_KEY",
    "STRIPE_PRICE_ID",
    "STRIPE_WEBHOOK_SECRET",
    "ODDS_API_KEY",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASSWORD",
    "SENDER_EMAIL",
    "SENDER_NAME",
):
    os.environ.pop(key, None)

from main import app
from db.base import Base
from db.models.user import User
from api.dependencies import get_db
from api.services.user_service import UserService
from db.repositories.user_repository import UserRepository

# One shared in-memory database for every connection in a test
test_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

PASSWORD = "strongpassword123"


def override_get_db():
    """Override database dependency for tests"""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session(test_db):
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(test_db):
    """Create a test client with overridden database"""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def make_user(db_session, now):
    """Insert a user; keyword arguments override the account fields"""
    user_service = UserService(UserRepository(db_session))
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        data = {
            "email": f"user{counter['n']}@example.com",
            "full_name": f"User {counter['n']}",
            "hashed_password": user_service.pwd_context.hash(PASSWORD),
            "subscription_active": False,
            "subscription_expires_at": None,
            "trial_expires_at": now + timedelta(days=2),
            "is_trial_used": False,
            "is_admin": False,
            "created_at": now,
        }
        data.update(fields)
        user = User(**data)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def login_as(client, db_session):
    """Put a session cookie for the user on the test client"""

    def _login(user):
        token = UserService(UserRepository(db_session)).create_access_token(
            {"sub": str(user.id)}, timedelta(minutes=30)
        )
        client.cookies.set("access_token", token)
        return token

    return _login
