import pytest

from app.services.auth_service import AuthService

from conftest import STRONG_PASSWORD, register


async def test_register_then_verify(client):
    user, headers = await register(client)
    assert user["email"] == "ana@x.com"
    assert user["role"] == "user"
    assert "password_hash" not in user

    r = await client.get("/api/v1/auth/verify", headers=headers)
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user["id"]


async def test_register_collects_field_errors(client):
    r = await client.post("/api/v1/auth/register", json={"name": "A", "email": "nope", "password": "abc"})
    assert r.status_code == 400
    details = r.json()["details"]
    assert set(details["fields"]) == {"name", "email", "password"}
    assert len(details["password_errors"]) >= 2


async def test_duplicate_email_conflicts(client):
    await register(client)
    r = await client.post(
        "/api/v1/auth/register",
        json={"name": "Other Ana", "email": "ANA@x.com", "password": STRONG_PASSWORD},
    )
    assert r.status_code == 409


async def test_login_success_and_generic_failure(client):
    await register(client)

    r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200
    assert r.json()["token"]

    wrong = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": "Wrong#Pass1"})
    unknown = await client.post("/api/v1/auth/login", json={"email": "bob@x.com", "password": "Wrong#Pass1"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Invalid email or password"


async def test_login_lockout_returns_retry_after(client, clock):
    await register(client)
    for _ in range(5):
        r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": "Wrong#Pass1"})
        assert r.status_code == 401

    r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 429
    assert int(r.headers["Retry-After"]) > 0

    clock.advance(minutes=31)
    r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200


async def test_session_token_expires(client, clock):
    _, headers = await register(client)
    clock.advance(days=8)
    r = await client.get("/api/v1/auth/profile", headers=headers)
    assert r.status_code == 401


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-token"}])
async def test_protected_route_requires_valid_token(client, headers):
    r = await client.get("/api/v1/auth/profile", headers=headers)
    assert r.status_code == 401


async def test_password_reset_flow(client, store, clock):
    user, _ = await register(client)
    token = await AuthService(store, clock).request_password_reset("ana@x.com")

    r = await client.get("/api/v1/auth/verify-reset-token", params={"token": token})
    assert r.json()["valid"] is True

    r = await client.post("/api/v1/auth/reset-password", json={"token": token, "newPassword": "New#Secret99"})
    assert r.status_code == 200

    r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": "New#Secret99"})
    assert r.status_code == 200

    r = await client.post("/api/v1/auth/reset-password", json={"token": token, "newPassword": "Other#Secret99"})
    assert r.status_code == 400


async def test_forgot_password_same_answer_for_unknown_email(client):
    await register(client)
    known = await client.post("/api/v1/auth/forgot-password", json={"email": "ana@x.com"})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@x.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]


async def test_reset_rejects_weak_password(client, store, clock):
    await register(client)
    token = await AuthService(store, clock).request_password_reset("ana@x.com")

    r = await client.post("/api/v1/auth/reset-password", json={"token": token, "newPassword": "aaaaaa"})
    assert r.status_code == 400
    details = r.json()["details"]
    assert "password" in details["fields"]
    assert len(details["password_errors"]) >= 3

    r = await client.get("/api/v1/auth/verify-reset-token", params={"token": token})
    assert r.json()["valid"] is True
    r = await client.post("/api/v1/auth/login", json={"email": "ana@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200


async def test_successful_login_clears_failure_count(client):
    await register(client)
    bad = {"email": "ana@x.com", "password": "Wrong#Pass1"}
    good = {"email": "ana@x.com", "password": STRONG_PASSWORD}

    for _ in range(4):
        assert (await client.post("/api/v1/auth/login", json=bad)).status_code == 401
    assert (await client.post("/api/v1/auth/login", json=good)).status_code == 200
    for _ in range(4):
        assert (await client.post("/api/v1/auth/login", json=bad)).status_code == 401

    r = await client.post("/api/v1/auth/login", json=good)
    assert r.status_code == 200
