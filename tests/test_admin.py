import pytest

from app.services.auth_service import AuthService

from conftest import BOOK_ID, STRONG_PASSWORD, book_token, register


@pytest.fixture
async def admin_headers(client, store, clock):
    await AuthService(store, clock).ensure_admin("admin@x.com", STRONG_PASSWORD, "Admin")
    r = await client.post("/api/v1/auth/login", json={"email": "admin@x.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


async def test_admin_routes_reject_regular_users(client):
    _, headers = await register(client)
    for path in ["/api/v1/admin/settings", "/api/v1/admin/users", "/api/v1/book-access/analytics/summary"]:
        r = await client.get(path, headers=headers)
        assert r.status_code == 403, path


async def test_settings_round_trip(client, admin_headers):
    r = await client.get("/api/v1/admin/settings", headers=admin_headers)
    assert r.json()["settings"] == {
        "authTokenExpiry": 7,
        "bookAccessTokenExpiry": 0,
        "maxLoginAttempts": 5,
        "passwordResetExpiry": 1,
        "enableEmailNotifications": True,
    }

    r = await client.post("/api/v1/admin/settings", headers=admin_headers, json={"settings": {"bookAccessTokenExpiry": 30}})
    assert r.status_code == 200
    assert r.json()["settings"]["bookAccessTokenExpiry"] == 30
    assert r.json()["settings"]["maxLoginAttempts"] == 5

    r = await client.post("/api/v1/admin/settings", headers=admin_headers, json={"settings": {"maxLoginAttempts": 2}})
    assert r.status_code == 400


async def test_settings_apply_to_new_book_tokens(client, admin_headers, reader, clock):
    await client.post("/api/v1/admin/settings", headers=admin_headers, json={"settings": {"bookAccessTokenExpiry": 30}})
    _, headers = await reader()
    issued = await book_token(client, headers)
    assert issued["expiresAt"] == int(clock().timestamp()) + 30 * 86400


async def test_grant_purchase(client, admin_headers):
    user, headers = await register(client)
    r = await client.post("/api/v1/book-access/generate-token", headers=headers, json={"bookId": BOOK_ID})
    assert r.status_code == 403

    r = await client.post("/api/v1/admin/purchases", headers=admin_headers, json={"user_id": user["id"], "book_id": BOOK_ID})
    assert r.status_code == 201
    await book_token(client, headers)

    r = await client.get("/api/v1/auth/user-books", headers=headers)
    assert [b["id"] for b in r.json()["books"]] == [BOOK_ID]


async def test_grant_purchase_unknown_user_or_book(client, admin_headers):
    user, _ = await register(client)
    r = await client.post("/api/v1/admin/purchases", headers=admin_headers, json={"user_id": "ghost", "book_id": BOOK_ID})
    assert r.status_code == 404
    r = await client.post("/api/v1/admin/purchases", headers=admin_headers, json={"user_id": user["id"], "book_id": "ghost"})
    assert r.status_code == 404


async def test_role_change(client, admin_headers):
    user, headers = await register(client)
    r = await client.put(f"/api/v1/admin/users/{user['id']}/role", headers=admin_headers, json={"role": "admin"})
    assert r.json()["role"] == "admin"

    r = await client.get("/api/v1/admin/users", headers=headers)
    assert r.status_code == 200
    assert {u["email"] for u in r.json()["users"]} == {"admin@x.com", "ana@x.com"}


async def test_analytics_summary(client, admin_headers, reader):
    user, headers = await reader()
    token = (await book_token(client, headers))["token"]
    session_id = (await client.post("/api/v1/book-access/analytics/start-session", json={"token": token})).json()["session_id"]
    await client.post("/api/v1/book-access/analytics/track", json={
        "token": token,
        "session_id": session_id,
        "page_data": {"page_number": 1, "completion_status": "completed"},
        "timing_data": {"time_on_page": 120},
        "interactions": [{"type": "click"}] * 10,
    })
    await client.post("/api/v1/book-access/analytics/end-session", json={
        "token": token, "session_id": session_id, "final_metrics": {"total_duration": 600},
    })

    r = await client.get("/api/v1/book-access/analytics/summary", headers=admin_headers)
    assert r.status_code == 200
    summary = r.json()
    assert summary["totalUsers"] == 2
    assert summary["newUsersToday"] == 2
    assert summary["activeUsers"] == 1
    assert summary["totalSessions"] == 1
    assert summary["totalReadingTime"] == 600
    assert summary["averageEngagementScore"] == 100
    assert summary["topUsers"][0]["userId"] == user["id"]
    assert summary["topUsers"][0]["totalReadingTime"] == 10

    r = await client.get(f"/api/v1/book-access/analytics/user/{user['id']}", headers=admin_headers)
    detail = r.json()
    assert detail["overview"]["total_sessions"] == 1
    assert detail["recent_sessions"][0]["closed"] is True
    assert detail["page_analytics"][0]["visit_count"] == 1


async def test_user_analytics_unknown_user(client, admin_headers):
    r = await client.get("/api/v1/book-access/analytics/user/ghost", headers=admin_headers)
    assert r.status_code == 404


async def test_dashboard(client, admin_headers, reader):
    await reader()
    r = await client.get("/api/v1/admin/dashboard", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["stats"]["totalUsers"] == 2
    assert "topUsers" not in body["stats"]
    assert {u["email"] for u in body["recentUsers"]} == {"admin@x.com", "ana@x.com"}


async def test_enhanced_summary(client, admin_headers, reader):
    _, headers = await reader()
    token = (await book_token(client, headers))["token"]
    session_id = (await client.post("/api/v1/book-access/analytics/start-session", json={"token": token})).json()["session_id"]
    for page, page_type in [(2, "story"), (3, "cue"), (4, "cue")]:
        await client.post("/api/v1/book-access/analytics/track", json={
            "token": token,
            "session_id": session_id,
            "page_data": {"page_number": page, "chapter_name": "Chapter 1", "page_type": page_type, "completion_status": "completed"},
            "timing_data": {"time_on_page": 30},
            "interactions": [{"type": "cue", "element": "Golden Leaf"}] if page_type == "cue" else [],
        })

    r = await client.get("/api/v1/book-access/analytics/enhanced-summary", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["page_type_metrics"]["cue"]["total_visits"] == 2
    assert body["page_type_metrics"]["story"]["completion_rate"] == 100
    assert body["page_type_metrics"]["activity"]["total_visits"] == 0
    assert body["cue_analytics"] == [{"cue_name": "Golden Leaf", "total_encounters": 2}]
    assert body["most_engaging_chapters"] == ["Chapter 1"]


async def test_dashboard_requires_admin(client):
    _, headers = await register(client)
    assert (await client.get("/api/v1/admin/dashboard", headers=headers)).status_code == 403
    assert (await client.get("/api/v1/book-access/analytics/enhanced-summary", headers=headers)).status_code == 403
