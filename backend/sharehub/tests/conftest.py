import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DATABASE_URL"] = "sqlite:///./test_sharehub.db"
os.environ["CHAT_REPLY_DELAY_MIN"] = "0"
os.environ["CHAT_REPLY_DELAY_MAX"] = "0.05"
import pytest
from fastapi.testclient import TestClient

import sys
from pathlib import Path
import shutil
import time

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from sharehub.main import app
from sharehub.database import Base, SessionLocal, engine
from sharehub import models

TestingSessionLocal = SessionLocal

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    os.environ["UPLOAD_DIR"] = str(d)
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def fresh_db():
    """Empty every table for tests that assert on absolute counts."""
    session = TestingSessionLocal()
    try:
        session.query(models.ChatMessage).delete()
        session.query(models.File).delete()
        session.query(models.User).delete()
        session.commit()
    finally:
        session.close()
    yield


def register_user(client, *, username: str | None = None, password: str = "secret"):
    """
    sharehub: purpose: register a throwaway account and return its auth headers
    sharehub: outputs: tuple(headers dict, user dict)
    """

    name = username or f"user-{uuid.uuid4().hex[:10]}"
    resp = client.post(
        "/api/auth/register",
        json={"email": f"{name}@example.com", "username": name, "password": password},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]


def set_admin_flag(user_id: str, value: bool = True):
    session = TestingSessionLocal()
    try:
        user = session.get(models.User, uuid.UUID(str(user_id)))
        user.is_admin = value
        session.commit()
    finally:
        session.close()


def register_admin(client):
    headers, user = register_user(client)
    set_admin_flag(user["id"])
    return headers, user


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.05):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(interval)
    return predicate()
