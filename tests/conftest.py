import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import InMemoryDatabase
from main import create_app

ADMIN_EMAIL = "admin@quiz.com"
ADMIN_PASSWORD = "admin-secret"


@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        storage_backend="memory",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture()
def database():
    return InMemoryDatabase()


@pytest.fixture()
def app(settings, database):
    return create_app(settings, database)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def register(client):
    """Register a user and return its token."""
    def _register(email="a@x.com", password="secret1"):
        res = client.post("/users", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        return res.json()["token"]
    return _register


@pytest.fixture()
def admin_token(client):
    res = client.post("/users/auth", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200, res.text
    return res.json()["token"]


@pytest.fixture()
def quiz():
    return {
        "title": "Quiz1",
        "startText": "Welcome",
        "questions": [
            {"content": "Q1", "answers": [{"content": "A", "correct": True}]},
        ],
    }
