# tests/conftest.py

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app_factory import create_app
from config import Settings

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Paramètres isolés par test : base SQLite et répertoire de pièces jointes
    temporaires, administrateur connu.
    """
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'tasks.sqlite3'}",
        upload_dir=str(tmp_path / "uploads"),
        secret_key="test-secret-key",
        default_admin_email=ADMIN_EMAIL,
        default_admin_password=ADMIN_PASSWORD,
        default_admin_username="admin",
        log_level="WARNING",
    )


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    # Le bloc with déclenche les événements startup/shutdown (tables + admin)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db(app, client):
    session = app.state.db.session()
    yield session
    session.close()


@pytest.fixture()
def admin_headers(client) -> dict:
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return auth_headers(response.json()["token"])


@pytest.fixture()
def register(client):
    """Inscrit un utilisateur et retourne (id, en-têtes d'authentification)."""

    def _register(username: str, email: str = None, password: str = "secret"):
        email = email or f"{username}@example.com"
        response = client.post(
            "/api/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        headers = auth_headers(response.json()["token"])
        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200, me.text
        return me.json()["id"], headers

    return _register


@pytest.fixture()
def create_task(client, admin_headers):
    """Crée une tâche via l'API (formulaire multipart) en tant qu'administrateur."""

    def _create(assignee_id: int, title: str = "Task", files=None, **fields):
        data = {"title": title, "assignee_id": str(assignee_id)}
        data.update({k: v for k, v in fields.items() if v is not None})
        response = client.post("/api/tasks", data=data, files=files, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
