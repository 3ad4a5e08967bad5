import pytest
from fastapi.testclient import TestClient

from vaultx.config import Settings
from vaultx.database import Store
from vaultx.main import create_app
from vaultx.models.profile import Profile
from vaultx.models.user import User


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'vaultx-test.db'}",
        jwt_secret="test-secret",
        jwt_algorithm="HS256",
        password_hash_iterations=1_000,
        log_level="WARNING",
    )


@pytest.fixture
def store(settings):
    store = Store(settings)
    store.init_db()
    yield store
    store.dispose()


@pytest.fixture
def session(store):
    with store.session() as session:
        yield session


def make_owner(session, email="owner@example.com", name="Owner"):
    """Insert a user with its owner profile directly, bypassing the API."""
    user = User(email=email, hashed_password="unused")
    session.add(user)
    session.flush()
    profile = Profile(user_id=user.id, name=name, is_owner=True)
    session.add(profile)
    session.commit()
    return user.id, profile.id


@pytest.fixture
def owner(session):
    return make_owner(session)


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def register(client, email, password="correct-horse", name="Owner"):
    response = client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "name": name},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
        "profile_id": body["profiles"][0]["id"],
        "refresh_token": body["refresh_token"],
        "user_id": body["user"]["id"],
    }


@pytest.fixture
def alice(client):
    return register(client, "alice@example.com", name="Alice")


@pytest.fixture
def bob(client):
    return register(client, "bob@example.com", name="Bob")
