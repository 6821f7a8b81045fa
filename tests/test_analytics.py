import pytest

from app.models.reading_analytics import CompletionStatus, Interaction, PageData, TimingData
from app.services.analytics_service import AnalyticsService, engagement_score
from app.services.base.store import MemoryDocumentStore

from conftest import book_token, register


class EngagementWriteFailure(MemoryDocumentStore):
    def set(self, collection, doc_id, data):
        if collection == "page_engagements":
            raise RuntimeError("backend unavailable")
        super().set(collection, doc_id, data)


def test_engagement_score_bounds():
    assert engagement_score(0, 0, CompletionStatus.SKIPPED) == 0
    assert engagement_score(600, 50, CompletionStatus.COMPLETED) == 100
    assert engagement_score(60, 5, CompletionStatus.PARTIAL) == 50


@pytest.mark.parametrize("status", list(CompletionStatus))
def test_engagement_score_never_drops(status):
    scores = [engagement_score(t, n, status) for t, n in [(0, 0), (10, 1), (30, 1), (30, 4), (200, 4), (200, 40)]]
    assert scores == sorted(scores)


async def test_track_analytics(client, reader, store):
    user, headers = await reader()
    token = (await book_token(client, headers))["token"]
    session_id = (await client.post("/api/v1/book-access/analytics/start-session", json={"token": token})).json()["session_id"]

    r = await client.post("/api/v1/book-access/analytics/track", json={
        "token": token,
        "session_id": session_id,
        "page_data": {"page_number": 3, "chapter_name": "Chapter 1", "completion_status": "completed"},
        "timing_data": {"time_on_page": 120},
        "interactions": [{"type": "click"}, {"type": "cue", "element": "breathe"}],
    })
    assert r.status_code == 200
    body = r.json()
    assert body["analytics_processed"] is True
    assert body["engagement_score"] == engagement_score(120, 2, CompletionStatus.COMPLETED)

    profile = store.get("user_analytics", user["id"])
    assert profile["pages_read"] == 1
    assert profile["completion_rate"] == 100


async def test_end_session_counts_once(client, reader, store):
    user, headers = await reader()
    token = (await book_token(client, headers))["token"]
    session_id = (await client.post("/api/v1/book-access/analytics/start-session", json={"token": token})).json()["session_id"]

    end = {"token": token, "session_id": session_id, "final_metrics": {"total_duration": 300, "pages_visited": [1, 2], "final_interactions": 4}}
    first = await client.post("/api/v1/book-access/analytics/end-session", json=end)
    second = await client.post("/api/v1/book-access/analytics/end-session", json=end)

    assert first.json()["already_closed"] is False
    assert second.json()["already_closed"] is True

    profile = store.get("user_analytics", user["id"])
    assert profile["total_sessions"] == 1
    assert profile["total_reading_time"] == 300
    assert profile["average_session_duration"] == 300


async def test_cannot_end_another_users_session(client, reader):
    _, ana_headers = await reader()
    _, bo_headers = await reader(name="Bo", email="bo@x.com")
    ana_token = (await book_token(client, ana_headers))["token"]
    bo_token = (await book_token(client, bo_headers))["token"]
    session_id = (await client.post("/api/v1/book-access/analytics/start-session", json={"token": ana_token})).json()["session_id"]

    r = await client.post("/api/v1/book-access/analytics/end-session", json={"token": bo_token, "session_id": session_id})
    assert r.status_code == 404


async def test_totals_only_grow(store, clock):
    service = AnalyticsService(store, clock)
    seen = []
    for duration in [120, 0, 45]:
        session = await service.start_session("u1", "wtbtg")
        await service.end_reading_session(session.id, "u1", duration, [1], 1)
        profile = await service.get_profile("u1")
        seen.append((profile.total_sessions, profile.total_reading_time))

    assert seen == [(1, 120), (2, 120), (3, 165)]


async def test_telemetry_failure_is_reported_not_raised(clock):
    service = AnalyticsService(EngagementWriteFailure(), clock)
    session = await service.start_session("u1", "wtbtg")

    result = await service.track_analytics(
        "u1", "wtbtg", session.id,
        PageData(page_number=1),
        TimingData(time_on_page=12),
        [Interaction(type="click")],
    )

    assert result.success is True
    assert result.analytics_processed is False
    assert result.engagement_score is None
    assert (await service.get_profile("u1")).pages_read == 0


async def test_session_endpoints_require_purchase(client, reader):
    _, headers = await register(client, name="Cy", email="cy@x.com")
    r = await client.post("/api/v1/reading/sessions", headers=headers, json={"book_id": "wtbtg"})
    assert r.status_code == 403

    _, owner_headers = await reader()
    r = await client.post("/api/v1/reading/sessions", headers=owner_headers, json={"book_id": "wtbtg"})
    assert r.status_code == 201
    session_id = r.json()["id"]

    r = await client.put(f"/api/v1/reading/sessions/{session_id}", headers=owner_headers, json={"total_duration": 60})
    assert r.json() == {"success": True, "session_id": session_id, "already_closed": False}


async def test_malformed_profile_does_not_break_tracking(store, clock):
    store.set("user_analytics", "u1", {"total_sessions": "many"})
    service = AnalyticsService(store, clock)
    session = await service.start_session("u1", "wtbtg")

    result = await service.track_analytics(
        "u1", "wtbtg", session.id, PageData(page_number=1), TimingData(time_on_page=5), [],
    )

    assert result.analytics_processed is False
