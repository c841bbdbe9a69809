import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="yappy-demo-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["YAPPY_COMMERCE_API_KEY"] = "ETKHX-75645671"
os.environ["YAPPY_COMMERCE_SECRET_KEY"] = "test-secret-key"
os.environ["BASE_URL"] = "http://testserver"
os.environ["YAPPY_SESSION_REQUIRED"] = "false"
os.environ.pop("SECURITY_TOKEN", None)

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import SQLModel

from yappy_demo.config import settings
from yappy_demo.db import async_session, engine
from yappy_demo.main import app
from yappy_demo.routers import payments
from yappy_demo.security import expected_login_hash
from yappy_demo.services import yappy

API_KEY = os.environ["YAPPY_COMMERCE_API_KEY"]
SECRET_KEY = os.environ["YAPPY_COMMERCE_SECRET_KEY"]


def yappy_headers(token=None):
    headers = {"api-key": API_KEY, "secret-key": SECRET_KEY}
    if token:
        headers["authorization"] = f"Bearer {token}"
    return headers


async def _reset_tables():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_db(client):
    client.portal.call(_reset_tables)


@pytest.fixture(autouse=True)
def in_process_yappy(monkeypatch):
    """Point the Yappy client at the app itself instead of the network."""
    def _client():
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=settings.base_url,
            timeout=settings.http_timeout,
        )

    monkeypatch.setattr(yappy, "_client", _client)


class BrokenSession:
    """Stands in for async_session() when the database is unreachable."""

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, ConnectionError("database is down"))

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def qr_urls(monkeypatch):
    """Record every URL rendered to a QR code."""
    seen = []
    real = payments.make_qr_data_url

    def _spy(text):
        seen.append(text)
        return real(text)

    monkeypatch.setattr(payments, "make_qr_data_url", _spy)
    return seen


@pytest.fixture
def session_token(client):
    code = expected_login_hash()
    resp = client.post(
        "/api/v1/session/login",
        json={"body": {"code": code}},
        headers={**yappy_headers(), "authorization": f"Bearer {code}"},
    )
    assert resp.status_code == 200
    return resp.json()["body"]["token"]


@pytest.fixture
def create_payment(client):
    def _create(**fields):
        payload = {"amount": 5.0, "currency": "USD", "description": "Pago de prueba"}
        payload.update(fields)
        resp = client.post("/api/internal/create-payment", json=payload)
        assert resp.status_code == 200, resp.text
        return resp.json()
    return _create


class FailingCommitSession:
    """A real session whose commit fails, so reads succeed and the write does not."""

    def __init__(self):
        self._cm = async_session()

    async def __aenter__(self):
        session = await self._cm.__aenter__()

        async def _commit():
            raise OperationalError("COMMIT", {}, ConnectionError("disk I/O error"))

        session.commit = _commit
        return session

    async def __aexit__(self, *exc):
        return await self._cm.__aexit__(*exc)
