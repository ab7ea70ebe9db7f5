import os
import tempfile
from datetime import datetime, timedelta, timezone

# Configure an isolated SQLite database before the app modules read settings
_test_tmp_dir = tempfile.mkdtemp(prefix="smartmeeting_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_tmp_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-do-not-use-in-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["TOKEN_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ["COOKIE_SECURE"] = "true"
os.environ["ACCESS_TOKEN_TRANSPORT"] = "bearer"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import get_settings  # noqa: E402
from app.db.database import Base, SessionLocal, engine  # noqa: E402
from app.models import user as _user_models  # noqa: E402,F401
from app.services.auth_service import AuthService  # noqa: E402
from create_tables import create_tables  # noqa: E402

ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "Abcd1234!"


class FakeClock:
    def __init__(self, start: datetime = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    create_tables()
    yield


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_clock():
    return FakeClock(datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def auth_service(db, settings, clock):
    return AuthService(db, settings, clock=clock)


@pytest.fixture
def alice(auth_service):
    """Register alice and return the registration result."""
    result = auth_service.register(ALICE_EMAIL, ALICE_PASSWORD, "Alice", "Smith", "10.0.0.1")
    assert result.success, result.errors
    return result


@pytest.fixture
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # https so the Secure refresh cookie is stored and sent back
    return TestClient(app, base_url="https://testserver")
