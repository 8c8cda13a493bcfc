"""Test configuration and fixtures.

Environment:
    TESTING=true -> file-based SQLite (sqlite+aiosqlite:///./test.db), reduced bcrypt
                    rounds, no startup connectivity check

Schema is created once per session from model metadata; every test starts
with empty tables. PDF rendering is replaced by a fake in API tests so the
suite does not depend on WeasyPrint's system libraries.
"""

import os
from typing import AsyncGenerator, Dict
from uuid import uuid4

# Flag test mode before the application modules read their configuration
os.environ.setdefault("TESTING", "true")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402

from swift_invoice.config.database import (  # noqa: E402
    AsyncSessionLocal,
    create_database_tables,
    drop_database_tables,
    engine,
)
from swift_invoice.config.settings import get_settings  # noqa: E402
from swift_invoice.main import app  # noqa: E402
from swift_invoice.models.database import Base  # noqa: E402

FAKE_PDF = b"%PDF-1.4 fake"
TEST_PASSWORD = "secure_password"


@pytest.fixture(scope="session", autouse=True)
def _bootstrap_db():  # noqa: D401
    """Create a fresh schema for the test session."""
    drop_database_tables()
    create_database_tables()
    yield
    drop_database_tables()


@pytest.fixture(autouse=True)
def _table_isolation():
    """Delete all rows after each test so tests never observe each other's data."""
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest_asyncio.fixture
async def db_session():  # noqa: D401
    """Async session on the test database for direct ORM assertions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def register_user(client: AsyncClient, name: str) -> Dict:
    """Register a unique user through the API and attach its bearer token to `client`."""
    resp = await client.post("/api/v1/auth/register", json={
        "email": f"{name}-{uuid4().hex[:8]}@example.com",
        "password": TEST_PASSWORD,
        "fullName": name.title(),
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    client.headers.update({"Authorization": f"Bearer {data['access_token']}"})
    return data["user"]


@pytest_asyncio.fixture
async def anon_client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without credentials."""
    async with _client() as client:
        yield client


@pytest_asyncio.fixture
async def auth_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client authenticated as a freshly registered user (`client.user`)."""
    async with _client() as client:
        client.user = await register_user(client, "owner")  # type: ignore[attr-defined]
        yield client


@pytest_asyncio.fixture
async def other_client() -> AsyncGenerator[AsyncClient, None]:
    """Second authenticated user, used for ownership checks."""
    async with _client() as client:
        client.user = await register_user(client, "intruder")  # type: ignore[attr-defined]
        yield client


@pytest.fixture
def fake_pdf(monkeypatch):
    """Replace the WeasyPrint-backed renderer used by the download route.

    Returns the list of invoice numbers that were rendered.
    """
    rendered = []

    def _render(invoice):
        rendered.append(invoice.invoice_number)
        return FAKE_PDF

    monkeypatch.setattr("swift_invoice.routers.invoices.generate_invoice_pdf", _render)
    return rendered


@pytest.fixture
def guest_mode(monkeypatch):
    """Enable anonymous create/download for the duration of a test."""
    monkeypatch.setenv("ALLOW_GUEST_INVOICES", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def invoice_payload() -> Dict:
    """Complete non-draft invoice as the editor sends it (camelCase)."""
    return {
        "isDraft": False,
        "sender": {
            "name": "Ada Lovelace",
            "email": "ada@analytical.example",
            "address": "12 Engine Row, London",
            "companyName": "Analytical Engines Ltd",
        },
        "client": {
            "name": "Charles Babbage",
            "email": "charles@difference.example",
            "address": "1 Gear Street",
        },
        "items": [
            {"description": "Design work", "quantity": 2, "rate": 100},
            {"description": "Hosting", "quantity": 1, "rate": 50},
        ],
        "taxName": "VAT",
        "taxPercentage": 10,
        "discount": 20,
        "currency": "USD",
        "issueDate": "2026-01-15",
        "dueDate": "2026-02-14",
        "paymentTerms": "Net 30",
        "notes": "Thanks!",
    }


@pytest.fixture
def create_invoice(invoice_payload):
    """Factory: POST an invoice with optional overrides and return the response data."""

    async def _create(http_client: AsyncClient, /, **overrides) -> Dict:
        payload = {**invoice_payload, **overrides}
        resp = await http_client.post("/api/v1/invoices", json=payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create
