import os

# Keep the app's own engine off disk; tests swap in their own session below.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schoolboard.api.deps import get_db
from schoolboard.db.base import Base
from schoolboard.main import app
from schoolboard.models.user import UserRole
from schoolboard.services.accounts import create_account
from schoolboard.services.staging import staging_sessions

DEFAULT_PASSWORD = "password123"


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import schoolboard.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    staging_sessions.clear()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    staging_sessions.clear()


@pytest.fixture()
def make_user(db):
    def _make_user(username: str, role: UserRole = UserRole.student, **fields):
        fields.setdefault("first_name", username.split(".")[-1].title())
        fields.setdefault("password", DEFAULT_PASSWORD)
        user = create_account(db, username=username, role=role, **fields)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def login_as(client):
    def _login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture()
def admin_headers(make_user, login_as):
    make_user("admin", UserRole.admin, first_name="Ada", last_name="Admin")
    return login_as("admin")
