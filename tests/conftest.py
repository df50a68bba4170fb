"""
Test configuration and fixtures.
"""
import os
import pytest
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test configuration before importing app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret-0123456789abcdefghijklmnop"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-0123456789abcdefghijklmnop"

from storefront.main import app
from storefront.db.base import Base
from storefront.db.session import get_db
from storefront.core.deps import get_refresh_store
from storefront.core.security import hash_password
from storefront.models.user import User, ROLE_ADMIN
from storefront.services.refresh_tokens import InMemoryRefreshTokenStore


# In-memory SQLite shared across threads so sync endpoints see the same data
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpassword123"


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh schema and a database session for the test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def refresh_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture(scope="function")
def app_overrides(db: Session, refresh_store: InMemoryRefreshTokenStore) -> Generator[None, None, None]:
    """Point the app at the test database and the in-memory refresh store."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_refresh_store] = lambda: refresh_store
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app_overrides) -> Generator[TestClient, None, None]:
    """Create test client with database and refresh store overrides."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_client(app_overrides):
    """Factory for extra clients, each with its own cookie jar (a second device)."""
    clients = []

    def _make(**kwargs) -> TestClient:
        c = TestClient(app, **kwargs)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


@pytest.fixture
def test_user(db: Session) -> User:
    user = User(
        name="Test User",
        email="testuser@example.com",
        hashed_password=hash_password(TEST_PASSWORD),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    user = User(
        name="Admin",
        email="admin@example.com",
        hashed_password=hash_password(TEST_PASSWORD),
        role=ROLE_ADMIN,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def login():
    """Log a client in; returns the response."""
    def _login(client: TestClient, email: str = "testuser@example.com", password: str = TEST_PASSWORD):
        return client.post("/api/auth/login", json={"email": email, "password": password})
    return _login


@pytest.fixture
def logged_in_client(client: TestClient, test_user: User, login) -> TestClient:
    """Client holding session cookies for the test user."""
    response = login(client)
    assert response.status_code == 200
    return client
