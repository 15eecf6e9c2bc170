"""Root conftest for all tests.

Every test gets its own SQLite database file; ``get_session()`` and the
FastAPI routes transparently use it.
"""

import os

from cryptography.fernet import Fernet

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.config.settings import settings
from app.db.models import Base, User, UserRole
from app.services import auth_service


def _make_engine(db_path):
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        """Enable foreign key constraints in SQLite connections."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Clear in-memory limiter and OAuth state between tests."""
    from app.api.auth import auth as auth_routes
    from app.api.auth import auth_strava as strava_routes

    auth_routes.login_rate_limiter.reset()
    with strava_routes._oauth_states_lock:
        strava_routes._oauth_states.clear()
    yield
    auth_routes.login_rate_limiter.reset()


@pytest.fixture(scope="function")
def db_engine(monkeypatch, tmp_path):
    """
    Isolated SQLite database file for one test.

    Patches the lazy engine and session factory in app.db.session so every
    ``get_session()`` call (services, routes, fallback worker threads) hits
    this database.
    """
    engine = _make_engine(tmp_path / "test.db")
    Base.metadata.create_all(engine)
    session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    monkeypatch.setattr("app.db.session._get_engine", lambda: engine)
    monkeypatch.setattr("app.db.session._get_session_local", lambda: session_local)

    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """
    Session on the per-test database.

    Usage:
        def test_something(db_session):
            db_session.add(User(...))
            db_session.commit()
    """
    from app.db.session import _get_session_local

    session = _get_session_local()()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_user(db_session):
    """Factory creating committed users with a password."""

    def _make_user(
        username: str = "runner",
        email: str | None = None,
        password: str | None = "Secret123",
        role: str = UserRole.user,
    ) -> User:
        user = auth_service.create_user(db_session, username, email or f"{username}@example.com", password, role=role)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def client(db_engine):
    """TestClient without the lifespan; tables already exist."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def auth_client(client, make_user):
    """TestClient logged in as a regular user."""
    make_user("runner", password="Secret123")
    response = client.post("/auth/login", json={"username": "runner", "password": "Secret123"})
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(client, make_user):
    make_user("boss", password="Secret123", role=UserRole.admin)
    response = client.post("/auth/login", json={"username": "boss", "password": "Secret123"})
    assert response.status_code == 200
    return client


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(settings, "app_env", "production")
