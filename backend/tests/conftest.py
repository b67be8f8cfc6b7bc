"""Pytest configuration and fixtures for backend tests."""

import os
import tempfile

# Settings are read once at import time, so the environment must be ready first.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="fc-media-")
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient

from app.api import middleware
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.models import Project, ProjectAssignment, ScopeItem, User
from app.services import user_status
from app.services.users import build_auth_metadata

DEFAULT_PASSWORD = "Sup3rSecret!"


@pytest.fixture(autouse=True)
def reset_database():
    """Give every test empty tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    app.state.rate_limiter.reset()
    yield
    app.state.rate_limiter.reset()


@pytest.fixture
def activity_touches(monkeypatch):
    """Run activity updates inline and record which users were touched."""
    touched = []

    def _touch(user_id):
        touched.append(user_id)
        user_status.touch_last_active(user_id)

    monkeypatch.setattr(middleware, "schedule_activity_touch", _touch)
    return touched


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(activity_touches):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def make_user(db_session):
    """Create a user; ``with_claims=False`` leaves auth metadata empty like a legacy account."""
    counter = {"n": 0}

    def _make(role="pm", is_active=True, must_change_password=False, with_claims=True, email=None):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            role=role,
            is_active=is_active,
            must_change_password=must_change_password,
            password_hash=hash_password(DEFAULT_PASSWORD),
        )
        user.auth_metadata = build_auth_metadata(user) if with_claims else {}
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


def session_token(user: User) -> str:
    return create_access_token(str(user.id), user.auth_metadata)


@pytest.fixture
def login_as(client):
    """Authenticate the test client as ``user`` with a bearer session token."""

    def _login(user):
        client.headers["Authorization"] = f"Bearer {session_token(user)}"
        return client

    return _login


@pytest.fixture
def make_project(db_session):
    def _make(code="FC-001", name="Lobby fit-out", assign=()):
        project = Project(project_code=code, name=name)
        db_session.add(project)
        db_session.flush()
        for user in assign:
            db_session.add(ProjectAssignment(project_id=project.id, user_id=user.id))
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make


@pytest.fixture
def make_scope_item(db_session):
    def _make(project, code="ITEM-01", name="Reception desk"):
        item = ScopeItem(project_id=project.id, item_code=code, name=name)
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make
