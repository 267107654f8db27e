"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Tables are emptied before every test.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_staydigest.db"
os.environ["API_TOKEN"] = "test-token"
os.environ["OPENCLAW_HOOK_URL"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.main import app
from app.models import Digest, Event, Place
from app.routers.digests import get_sender
from app.services.notification import NotificationSender

SQLITE_URL = "sqlite:///./test_staydigest.db"
AUTH = {"Authorization": "Bearer test-token"}
HOOK_URL = "http://openclaw.test/hooks/agent"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class HookRecorder:
    """httpx.MockTransport handler that records posted messages."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_tables():
    db = TestingSessionLocal()
    try:
        for model in (Event, Digest, Place):
            db.query(model).delete()
        db.commit()
    finally:
        db.close()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def hook():
    return HookRecorder()


@pytest.fixture()
def sender(hook):
    s = NotificationSender(
        url=HOOK_URL,
        token="hook-token",
        client=httpx.Client(transport=httpx.MockTransport(hook)),
    )
    yield s
    s.close()


@pytest.fixture()
def client(db, sender):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sender] = lambda: sender
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
