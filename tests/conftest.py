"""Pytest configuration and fixtures."""

import os
import tempfile

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("EXPOSE_OTP_IN_RESPONSE", "true")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("DEEPSEEK_API_KEY", "test-deepseek-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="soilsense-media-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from soilsense.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from soilsense.models import conversation, otp, report  # noqa: E402, F401
from soilsense.models.user import User  # noqa: E402
from soilsense.services.jwt import get_jwt_service  # noqa: E402
from soilsense.services.passwords import get_password_hasher  # noqa: E402
from soilsense.services.profile import ProfileService  # noqa: E402
from soilsense.services.storage import MediaStore  # noqa: E402


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="media_store")
def media_store_fixture(tmp_path):
    """Media store rooted in a per-test temporary directory."""
    return MediaStore(str(tmp_path / "media"), "/media")


@pytest.fixture(name="client")
def client_fixture(db_session: Session, media_store: MediaStore):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from main import app
    from soilsense.rate_limit import limiter
    from soilsense.routers import auth as auth_module
    from soilsense.services import profile as profile_module

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Point post-response work at the test DB session
    auth_module._session_factory = lambda: db_session
    profile_module._profile_service = ProfileService(media_store)

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()
    auth_module._session_factory = None
    profile_module._profile_service = None


@pytest.fixture(name="user_factory")
def user_factory_fixture(db_session: Session):
    """Return a function that creates users directly in the test database."""

    def make_user(
        email: str = "test@example.com",
        password: str = "password123",
        name: str = "Test User",
        is_verified: bool = True,
        is_active: bool = True,
    ) -> User:
        user = User(
            email=email,
            name=name,
            password_hash=get_password_hasher().hash(password),
            auth_provider="email",
            is_active=is_active,
            is_verified=is_verified,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="test_user")
def test_user_fixture(user_factory):
    """Create a verified test user and return its data plus tokens."""
    user = user_factory()
    tokens = get_jwt_service().issue_pair(user)
    return {
        "user_id": user.id,
        "email": user.email,
        "password": "password123",
        "token": tokens.access_token,
        "refresh_token": tokens.refresh_token,
    }


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(test_user: dict) -> dict:
    return {"Authorization": f"Bearer {test_user['token']}"}
