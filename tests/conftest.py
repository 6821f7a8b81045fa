from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.api.v1.dependencies import get_clock
from app.models.book import PurchaseCreate
from app.services.base.store import MemoryDocumentStore, get_store
from app.services.book_service import BookService
from main import app

STRONG_PASSWORD = "Brave#Things1"
BOOK_ID = "wtbtg"


class FakeClock:
    """Settable clock so expiry and lockouts can be tested without waiting"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
async def catalog(store, clock):
    service = BookService(store, clock)
    await service.seed_catalog()
    return service


@pytest.fixture
async def client(store, clock, catalog):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def register(client, name="Ana", email="ana@x.com", password=STRONG_PASSWORD):
    r = await client.post("/api/v1/auth/register", json={"name": name, "email": email, "password": password})
    assert r.status_code == 201, r.text
    body = r.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


async def grant(catalog, user_id, book_id=BOOK_ID, access_days=None):
    return await catalog.grant_access(PurchaseCreate(user_id=user_id, book_id=book_id, access_days=access_days))


async def book_token(client, headers, book_id=BOOK_ID):
    r = await client.post("/api/v1/book-access/generate-token", headers=headers, json={"bookId": book_id})
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def reader(client, catalog):
    """Registered user who owns the default book: (user, session headers)"""
    async def _make(name="Ana", email="ana@x.com"):
        user, headers = await register(client, name=name, email=email)
        await grant(catalog, user["id"])
        return user, headers
    return _make
