"""Pytest configuration and fixtures"""
import os

# Settings are read at import time; configure the test environment first
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["REAPER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("MAINTENANCE_API_KEY", None)
os.environ.pop("REVOCATION_CHECK_URL", None)

from datetime import datetime, timedelta  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from tokenguard.database import Base, get_db  # noqa: E402
from tokenguard.main import app  # noqa: E402
from tokenguard.services.revocation import RevocationService  # noqa: E402
from tokenguard.services.revocation_store import InMemoryRevocationStore  # noqa: E402
from tokenguard.services.users import UserRepository  # noqa: E402
from tokenguard.utils.jwt_utils import TokenCodec, utcnow  # noqa: E402
from tokenguard.utils.passwords import PasswordHasher  # noqa: E402

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
STRONG_PASSWORD = "Sup3r$ecret!"


class FakeClock:
    """Settable clock for codecs and stores."""

    def __init__(self, start: datetime = None):
        self.current = start or utcnow().replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock: FakeClock) -> TokenCodec:
    return TokenCodec(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_ttl_seconds=900,
        refresh_ttl_seconds=7 * 86400,
        clock=clock,
    )


@pytest.fixture
def users(db: Session) -> UserRepository:
    # Low-cost scheme keeps hashing out of the test runtime
    return UserRepository(db, PasswordHasher("plaintext"))


@pytest.fixture
def memory_store() -> InMemoryRevocationStore:
    return InMemoryRevocationStore()


@pytest.fixture
def service(memory_store: InMemoryRevocationStore, codec: TokenCodec, users: UserRepository) -> RevocationService:
    return RevocationService(store=memory_store, codec=codec, users=users)


@pytest.fixture
def user(users: UserRepository):
    return users.create_user("alice@tokenguard.io", STRONG_PASSWORD)


@pytest.fixture
def register(client: TestClient):
    """Register a user through the API; returns ``(access_token, refresh_token, body)``"""

    def _register(email: str = "alice@tokenguard.io", password: str = STRONG_PASSWORD):
        response = client.post("/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        body = response.json()
        return body["accessToken"], response.cookies.get("refreshToken"), body

    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
