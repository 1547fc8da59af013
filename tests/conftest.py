import os

# Configure the app for tests before any diverwell module reads the environment
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from diverwell import rate_limiter  # noqa: E402
from diverwell.auth import get_current_user  # noqa: E402
from diverwell.database import Base, SessionLocal, engine, get_db  # noqa: E402
from diverwell.main import app  # noqa: E402
from diverwell.models import ROLE_ADMIN, ROLE_USER, User  # noqa: E402


@pytest.fixture(autouse=True)
def reset_rate_limits():
    rate_limiter.memory_cache.clear()
    yield
    rate_limiter.memory_cache.clear()


@pytest.fixture
def db():
    """Fresh schema per test on the shared in-memory connection"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str = ROLE_USER, **kwargs) -> User:
        kwargs.setdefault("full_name", email.split("@")[0])
        user = User(firebase_uid=f"uid-{email}", email=email, role=role, **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@diverwell.com", role=ROLE_ADMIN, full_name="Admin Diver")


@pytest.fixture
def member_user(make_user):
    return make_user("learner@diverwell.com", full_name="Learner Diver")


class AuthState:
    """Which user the overridden auth dependency returns"""

    def __init__(self):
        self.user_id = None

    def login(self, user: User) -> None:
        self.user_id = user.id


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
def client(db, auth, admin_user):
    """API client signed in as the admin unless a test logs in someone else"""
    auth.login(admin_user)

    def override_current_user(session: Session = Depends(get_db)) -> User:
        return session.query(User).filter(User.id == auth.user_id).first()

    app.dependency_overrides[get_current_user] = override_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
