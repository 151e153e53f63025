from datetime import datetime, timedelta, timezone

import pytest

from quiniela import create_app, db
from quiniela.models import User
from quiniela.models.user import ROLE_ADMIN, ROLE_USER
from quiniela.services.pool_service import get_pool_service

PASSWORD = "password123"


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """Application storing quinielas in a JSON document instead of the database"""
    app = create_app(
        "testing",
        config_overrides={
            "POOL_STORAGE": "file",
            "POOL_DATA_FILE": str(tmp_path / "quiniela-data.json"),
        },
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def create_user(app, name, email, role=ROLE_USER, password=PASSWORD):
    with app.app_context():
        user = User(name=name, email=email, role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, email, password=PASSWORD):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.get_json()
    return response


@pytest.fixture
def admin_id(app):
    return create_user(app, "Admin", "admin@quiniela.io", role=ROLE_ADMIN)


@pytest.fixture
def ana_id(app):
    return create_user(app, "Ana", "ana@quiniela.io")


@pytest.fixture
def luis_id(app):
    return create_user(app, "Luis", "luis@quiniela.io")


@pytest.fixture
def admin_client(app, admin_id):
    client = app.test_client()
    login(client, "admin@quiniela.io")
    return client


@pytest.fixture
def ana_client(app, ana_id):
    client = app.test_client()
    login(client, "ana@quiniela.io")
    return client


@pytest.fixture
def luis_client(app, luis_id):
    client = app.test_client()
    login(client, "luis@quiniela.io")
    return client


@pytest.fixture
def service(app):
    with app.app_context():
        yield get_pool_service()


@pytest.fixture
def next_week():
    return datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=7)
