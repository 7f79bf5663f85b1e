from typing import Callable

import pytest
from fastapi.testclient import TestClient

from user_manager import models
from user_manager.config import Settings
from user_manager.database import build_engine
from user_manager.main import create_app

TEST_SECRET = "test-jwt-secret-key-for-testing-purposes-only-12345678901234567890"
DEFAULT_PASSWORD = "password123"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        jwt_secret=TEST_SECRET,
        port=5001,
        cors_origin="http://localhost:3000",
        environment="test",
        bcrypt_rounds=4,
    )


@pytest.fixture()
def app(settings):
    return create_app(settings, engine=build_engine(settings.database_url))


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def open_session(app) -> Callable:
    """Session factory bound to the app's database, for arranging and inspecting state."""
    return app.state.session_factory


@pytest.fixture()
def service(app):
    return app.state.user_service


@pytest.fixture()
def make_user(app, open_session):
    """Insert a user directly and return its id."""

    def _make_user(
        email: str = "test@example.com",
        first_name: str = "Test",
        last_name: str = "User",
        password: str = DEFAULT_PASSWORD,
        role: models.Role = models.Role.USER,
        status: models.Status = models.Status.ACTIVE,
    ) -> int:
        with open_session() as db:
            user = models.User(
                first_name=first_name,
                last_name=last_name,
                email=email.lower(),
                password_hash=app.state.password_hasher.hash(password),
                role=role,
                status=status,
            )
            db.add(user)
            db.commit()
            return user.id

    return _make_user


@pytest.fixture()
def token_for(app, open_session):
    def _token_for(user_id: int) -> str:
        with open_session() as db:
            return app.state.token_service.issue(db.get(models.User, user_id))

    return _token_for


@pytest.fixture()
def auth_headers(token_for):
    def _auth_headers(user_id: int) -> dict:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return _auth_headers


@pytest.fixture()
def admin_id(make_user):
    return make_user(email="admin@example.com", first_name="Admin", last_name="User", role=models.Role.ADMIN)


@pytest.fixture()
def regular_id(make_user):
    return make_user(email="regular@example.com", first_name="Regular", last_name="User")
