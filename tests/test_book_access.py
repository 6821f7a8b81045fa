from urllib.parse import parse_qs, urlparse

from app.models.admin import SystemSettingsUpdate
from app.services.settings_service import SystemSettingsService

from conftest import BOOK_ID, book_token, grant, register


async def validate(client, token, book_id=BOOK_ID, path="validate-token"):
    r = await client.post(f"/api/v1/book-access/{path}", json={"token": token, "bookId": book_id})
    assert r.status_code == 200
    return r.json()


async def test_generate_requires_purchase(client):
    _, headers = await register(client)
    r = await client.post("/api/v1/book-access/generate-token", headers=headers, json={"bookId": BOOK_ID})
    assert r.status_code == 403


async def test_generate_requires_session(client):
    r = await client.post("/api/v1/book-access/generate-token", json={"bookId": BOOK_ID})
    assert r.status_code == 401


async def test_token_reissued_unchanged(client, reader):
    _, headers = await reader()
    first = await book_token(client, headers)
    second = await book_token(client, headers)

    assert first["token"] == second["token"]
    assert first["reused"] is False
    assert second["reused"] is True
    assert first["expiresAt"] == 0

    query = parse_qs(urlparse(first["bookUrl"]).query)
    assert query["token"] == [first["token"]]
    assert query["platform"] == ["brave-things-books"]
    assert query["returnUrl"] == ["http://test/library"]


async def test_validate_token(client, reader):
    user, headers = await reader()
    issued = await book_token(client, headers)

    body = await validate(client, issued["token"])
    assert body["valid"] is True
    assert body["userId"] == user["id"]
    assert body["bookId"] == BOOK_ID
    assert set(body["permissions"]) == {"read", "bookmark", "progress"}
    assert body["user"]["email"] == "ana@x.com"


async def test_validate_rejects_other_book(client, reader):
    _, headers = await reader()
    issued = await book_token(client, headers)
    assert await validate(client, issued["token"], book_id="another-book") == {"valid": False}


async def test_validate_rejects_garbage_and_session_tokens(client, reader):
    _, headers = await reader()
    session_token = headers["Authorization"].split(" ", 1)[1]
    assert (await validate(client, "garbage"))["valid"] is False
    assert (await validate(client, session_token))["valid"] is False


async def test_zero_day_expiry_never_expires(client, reader, clock):
    _, headers = await reader()
    issued = await book_token(client, headers)

    clock.advance(days=400)
    assert (await validate(client, issued["token"]))["valid"] is True


async def test_configured_expiry(client, reader, store, clock):
    await SystemSettingsService(store, clock).update(SystemSettingsUpdate(book_access_token_expiry_days=1))
    _, headers = await reader()
    issued = await book_token(client, headers)
    assert issued["expiresAt"] == int(clock().timestamp()) + 86400

    clock.advance(days=2)
    assert (await validate(client, issued["token"]))["valid"] is False

    renewed = await book_token(client, headers)
    assert renewed["reused"] is False
    assert renewed["token"] != issued["token"]
    assert (await validate(client, renewed["token"]))["valid"] is True


async def test_expired_purchase_denies_token(client, catalog, clock):
    user, headers = await register(client)
    await grant(catalog, user["id"], access_days=1)
    await book_token(client, headers)

    clock.advance(days=2)
    r = await client.post("/api/v1/book-access/generate-token", headers=headers, json={"bookId": BOOK_ID})
    assert r.status_code == 403


async def test_validate_enhanced_returns_reading_state(client, reader):
    _, headers = await reader()
    token = (await book_token(client, headers))["token"]

    body = await validate(client, token, path="validate-enhanced")
    assert body["valid"] is True
    assert body["bookmarks"] == []
    assert body["progress"]["current_page"] == 1
    assert body["progress"]["current_chapter"] == "Chapter 1"
    assert body["analytics_session_id"].startswith("session_")
    assert body["return_info"]["url"] == "http://test/library"

    again = await validate(client, token, path="validate-enhanced")
    assert again["analytics_session_id"] != body["analytics_session_id"]


async def test_validate_enhanced_invalid_token(client):
    assert await validate(client, "garbage", path="validate-enhanced") == {"valid": False}
