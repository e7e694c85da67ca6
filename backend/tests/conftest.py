import os
import tempfile

# Settings are read at import time, so the test environment must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="mahattati-uploads-")
os.environ.pop("MAIL_HOST", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

import uuid

import pytest
from fastapi.testclient import TestClient

from mahattati.core.database import Base, SessionLocal, engine, init_db
from mahattati.core.security import create_access_token, get_password_hash
from mahattati.main import app
from mahattati.models.user import User
from mahattati.storage.local_storage import storage

DEFAULT_PASSWORD = "secret123"

# PNG signature plus padding; content is never decoded, only typed and sized
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture(autouse=True)
def database():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "upload_dir", tmp_path)
    return tmp_path


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(DEFAULT_PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    """Insert a user directly and return it with bearer auth headers"""
    def _make(role="advertiser", email=None, name="Test User"):
        user = User(
            name=name,
            email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
            hashed_password=password_hash,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user, {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _make


@pytest.fixture
def advertiser(make_user):
    return make_user("advertiser", name="Advertiser")


@pytest.fixture
def subscriber(make_user):
    return make_user("subscriber", name="Subscriber")


@pytest.fixture
def system_manager(make_user):
    return make_user("system_manager", name="System Manager")


@pytest.fixture
def marketing_manager(make_user):
    return make_user("marketing_manager", name="Marketing Manager")


@pytest.fixture
def create_ad(client):
    """Create an ad through the API, optionally publishing it"""
    def _create(headers, publish=False, **fields):
        data = {
            "title": "Station 1",
            "location_latitude": "24.7",
            "location_longitude": "46.6",
        }
        data.update({k: str(v) for k, v in fields.items()})
        response = client.post("/api/ads", data=data, headers=headers)
        assert response.status_code == 201, response.text
        ad = response.json()["ad"]
        if publish:
            response = client.put(f"/api/ads/{ad['id']}", data={"status": "published"}, headers=headers)
            assert response.status_code == 200, response.text
            ad = response.json()["ad"]
        return ad

    return _create
