"""
Reading sessions, page engagement telemetry and per-user analytics profiles

Everything is keyed by user id, never by token, so analytics keep
accumulating across token renewals, devices and logins. Profile counters
only grow.
"""
import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.clock import Clock, parse_datetime, to_iso, utcnow
from ..core.exceptions import (
    BraveThingsException, ResourceNotFoundException, TelemetryException,
)
from ..models.reading_analytics import (
    AnalyticsSummary, CompletionStatus, EndSessionResult, Interaction,
    InteractionPatterns, PageData, PageType, ReadingSession, ScrollBehavior, TimingData,
    TopUser, TrackResult, UserAnalyticsProfile,
)
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore

logger = logging.getLogger(__name__)

TIME_CAP_SECONDS = 120
INTERACTION_CAP = 10
COMPLETION_POINTS = {
    CompletionStatus.COMPLETED: 20,
    CompletionStatus.PARTIAL: 10,
    CompletionStatus.SKIPPED: 0,
}
# completion rate contribution of one tracked page
COMPLETION_RATES = {
    CompletionStatus.COMPLETED: 100,
    CompletionStatus.PARTIAL: 50,
    CompletionStatus.SKIPPED: 0,
}
ACTIVE_WINDOW_DAYS = 7
TOP_USERS = 5
RECENT_SESSIONS = 10
RECENT_USERS = 5


def engagement_score(time_on_page: float, interaction_count: int, status: CompletionStatus) -> int:
    """
    Score one page view on a 0-100 scale.

    Up to 40 points for time on page (saturating at two minutes), up to 40
    for interactions (saturating at ten) and up to 20 for completion. Never
    decreases when time or interactions grow.
    """
    time_part = 40 * min(max(time_on_page, 0), TIME_CAP_SECONDS) / TIME_CAP_SECONDS
    interaction_part = 40 * min(max(interaction_count, 0), INTERACTION_CAP) / INTERACTION_CAP
    return int(round(time_part + interaction_part + COMPLETION_POINTS[status]))


def scroll_behavior(clicks_per_page: float) -> ScrollBehavior:
    if clicks_per_page > 10:
        return ScrollBehavior.FAST
    if clicks_per_page > 5:
        return ScrollBehavior.MODERATE
    return ScrollBehavior.SLOW


def _running_mean(mean: float, count: int, sample: float) -> float:
    return round((mean * count + sample) / (count + 1), 2)


def _page_bucket() -> Dict[str, Any]:
    return {"total_visits": 0, "total_time": 0, "total_interactions": 0, "completed": 0}


class AnalyticsService:
    """Folds sessions and page engagements into user analytics profiles"""

    def __init__(self, store: DocumentStore, clock: Clock = utcnow):
        self.clock = clock
        self.sessions = DocumentBaseService(store, "reading_sessions", clock)
        self.engagements = DocumentBaseService(store, "page_engagements", clock)
        self.profiles = DocumentBaseService(store, "user_analytics", clock)
        self.users = DocumentBaseService(store, "users", clock)
        self.progress = DocumentBaseService(store, "reading_progress", clock)

    # Reading sessions

    async def start_session(
        self,
        user_id: str,
        book_id: str,
        device_type: Optional[str] = None,
        browser_info: Optional[str] = None,
    ) -> ReadingSession:
        session_id = f"session_{uuid.uuid4().hex}"
        created = await self.sessions.create(
            {
                "user_id": user_id,
                "book_id": book_id,
                "session_start": to_iso(self.clock()),
                "session_end": None,
                "total_duration": 0,
                "pages_visited": [],
                "interactions_count": 0,
                "device_type": device_type or "web",
                "browser_info": browser_info,
            },
            doc_id=session_id,
        )
        logger.info(f"📊 Reading session {session_id} started for user {user_id} on {book_id}")
        return ReadingSession(**created)

    async def find_open_session(self, user_id: str, book_id: str) -> Optional[ReadingSession]:
        docs = await self.sessions.query([("user_id", "==", user_id), ("book_id", "==", book_id)])
        open_sessions = [ReadingSession(**doc) for doc in docs if not doc.get("session_end")]
        if not open_sessions:
            return None
        return max(open_sessions, key=lambda s: s.session_start)

    async def touch_open_session(self, user_id: str, book_id: str, page: Optional[int]) -> Optional[str]:
        """Note a progress sync on the pair's open session, if there is one"""
        session = await self.find_open_session(user_id, book_id)
        if session is None:
            return None

        pages = set(session.pages_visited)
        if page is not None:
            pages.add(page)
        await self.sessions.update(session.id, {
            "pages_visited": sorted(pages),
            "interactions_count": session.interactions_count + 1,
        })
        return session.id

    async def end_reading_session(
        self,
        session_id: str,
        user_id: str,
        total_duration: int,
        pages_visited: List[int],
        final_interactions: int,
    ) -> EndSessionResult:
        """
        Close a session and count it on the user's profile.

        Closing an already closed session changes nothing. Raises
        ResourceNotFoundException when the session does not exist or belongs
        to someone else.
        """
        data = await self.sessions.find_by_id(session_id)
        if data is None or data.get("user_id") != user_id:
            raise ResourceNotFoundException("Reading session not found", details={"session_id": session_id})

        session = ReadingSession(**data)
        if session.is_closed:
            logger.info(f"Reading session {session_id} already closed")
            return EndSessionResult(session_id=session_id, already_closed=True)

        duration = max(0, int(total_duration))
        await self.sessions.update(session_id, {
            "session_end": to_iso(self.clock()),
            "total_duration": duration,
            "pages_visited": sorted(set(session.pages_visited) | set(pages_visited)),
            "interactions_count": max(0, int(final_interactions)),
        })

        profile = await self.get_profile(user_id)
        profile.total_sessions += 1
        profile.total_reading_time += duration
        profile.average_session_duration = profile.total_reading_time // profile.total_sessions
        await self._save_profile(profile)

        logger.info(f"📊 Reading session {session_id} ended after {duration}s")
        return EndSessionResult(session_id=session_id)

    # Page engagement telemetry

    async def track_analytics(
        self,
        user_id: str,
        book_id: str,
        session_id: str,
        page_data: PageData,
        timing_data: TimingData,
        interactions: List[Interaction],
    ) -> TrackResult:
        """Best effort. A failed write is logged and reported, never raised."""
        try:
            score = await self._record_engagement(user_id, book_id, session_id, page_data, timing_data, interactions)
        except TelemetryException as e:
            logger.warning(f"⚠️  Analytics not recorded for session {session_id}: {e.message} {e.details}")
            return TrackResult(analytics_processed=False, session_id=session_id)

        return TrackResult(analytics_processed=True, session_id=session_id, engagement_score=score)

    async def _record_engagement(
        self,
        user_id: str,
        book_id: str,
        session_id: str,
        page_data: PageData,
        timing_data: TimingData,
        interactions: List[Interaction],
    ) -> int:
        try:
            session = await self.sessions.find_by_id(session_id)
            if session is not None and session.get("user_id") != user_id:
                raise TelemetryException("Session belongs to another user", details={"session_id": session_id})

            score = engagement_score(timing_data.time_on_page, len(interactions), page_data.completion_status)
            await self.engagements.create({
                "user_id": user_id,
                "book_id": book_id,
                "session_id": session_id,
                "page_number": page_data.page_number,
                "chapter_name": page_data.chapter_name,
                "page_type": page_data.page_type.value,
                "time_on_page": timing_data.time_on_page,
                "interactions": [i.model_dump(mode="json") for i in interactions],
                "completion_status": page_data.completion_status.value,
                "engagement_score": score,
            })

            profile = await self.get_profile(user_id)
            samples = profile.engagement_samples
            patterns = profile.interaction_patterns
            clicks_per_page = _running_mean(patterns.clicks_per_page, samples, len(interactions))

            profile.engagement_score = min(100.0, _running_mean(profile.engagement_score, samples, score))
            profile.completion_rate = _running_mean(
                profile.completion_rate, samples, COMPLETION_RATES[page_data.completion_status]
            )
            profile.interaction_patterns = InteractionPatterns(
                clicks_per_page=clicks_per_page,
                scroll_behavior=scroll_behavior(clicks_per_page),
                pause_frequency=_running_mean(patterns.pause_frequency, samples, timing_data.time_on_page),
            )
            profile.pages_read += 1
            profile.engagement_samples = samples + 1
            await self._save_profile(profile)
            return score
        except TelemetryException:
            raise
        except BraveThingsException as e:
            raise TelemetryException("Failed to persist analytics", details={"error": e.message})
        except ValidationError as e:
            raise TelemetryException("Stored analytics profile is malformed", details={"error": str(e)})

    # Profiles

    async def get_profile(self, user_id: str) -> UserAnalyticsProfile:
        data = await self.profiles.find_by_id(user_id)
        if data is None:
            return UserAnalyticsProfile(user_id=user_id)
        return UserAnalyticsProfile(**data)

    async def _save_profile(self, profile: UserAnalyticsProfile) -> None:
        profile.last_calculated = self.clock()
        await self.profiles.create(profile.model_dump(mode="json"), doc_id=profile.user_id)

    async def user_analytics(self, user_id: str) -> Dict[str, Any]:
        """Admin view of one user: overview, recent sessions and per-page stats"""
        if await self.users.find_by_id(user_id) is None:
            raise ResourceNotFoundException("User not found", details={"user_id": user_id})

        profile = await self.get_profile(user_id)
        sessions = [ReadingSession(**doc) for doc in await self.sessions.get_all_by_user(user_id)]
        sessions.sort(key=lambda s: s.session_start, reverse=True)
        recent = sessions[:RECENT_SESSIONS]

        pages: Dict[int, Dict[str, Any]] = {}
        for doc in await self.engagements.get_all_by_user(user_id):
            page = pages.setdefault(doc["page_number"], {
                "page_number": doc["page_number"],
                "chapter_name": doc.get("chapter_name"),
                "total_time": 0,
                "visit_count": 0,
                "total_interactions": 0,
            })
            page["total_time"] += doc.get("time_on_page", 0)
            page["visit_count"] += 1
            page["total_interactions"] += len(doc.get("interactions", []))
        for page in pages.values():
            page["average_time"] = round(page["total_time"] / page["visit_count"])
            page["interaction_density"] = round(page["total_interactions"] / page["visit_count"], 1)

        return {
            "user_id": user_id,
            "overview": {
                "total_sessions": profile.total_sessions,
                "total_reading_time": profile.total_reading_time,
                "average_session_duration": profile.average_session_duration,
                "last_read_at": to_iso(recent[0].session_start) if recent else None,
                "pages_read": profile.pages_read,
                "completion_rate": profile.completion_rate,
                "engagement_score": profile.engagement_score,
                "interaction_patterns": profile.interaction_patterns.model_dump(mode="json"),
            },
            "recent_sessions": [
                {
                    "id": s.id,
                    "book_id": s.book_id,
                    "date": to_iso(s.session_start),
                    "duration": s.total_duration,
                    "pages_read": len(s.pages_visited),
                    "interactions": s.interactions_count,
                    "closed": s.is_closed,
                }
                for s in recent
            ],
            "page_analytics": sorted(pages.values(), key=lambda p: p["page_number"]),
        }

    async def summary(self) -> AnalyticsSummary:
        """Platform-wide numbers for the admin dashboard"""
        now = self.clock()
        users = {doc["id"]: doc for doc in await self.users.list_all()}
        profiles = [UserAnalyticsProfile(**doc) for doc in await self.profiles.list_all()]

        active_since = to_iso(now - timedelta(days=ACTIVE_WINDOW_DAYS))
        recent_sessions = await self.sessions.query([("session_start", ">=", active_since)])

        new_today = 0
        for doc in users.values():
            created = parse_datetime(doc.get("created_at"))
            if created is not None and created.date() == now.date():
                new_today += 1

        ranked = sorted(
            (p for p in profiles if p.user_id in users),
            key=lambda p: p.engagement_score,
            reverse=True,
        )
        top_users = [
            TopUser(
                user_id=p.user_id,
                user_name=users[p.user_id].get("name", "Unknown"),
                user_email=users[p.user_id].get("email", "Unknown"),
                engagement_score=p.engagement_score,
                total_sessions=p.total_sessions,
                total_reading_time=round(p.total_reading_time / 60),
            )
            for p in ranked[:TOP_USERS]
        ]

        return AnalyticsSummary(
            total_users=len(users),
            new_users_today=new_today,
            active_users=len({s["user_id"] for s in recent_sessions}),
            total_reading_time=sum(p.total_reading_time for p in profiles),
            total_sessions=sum(p.total_sessions for p in profiles),
            average_engagement_score=round(sum(p.engagement_score for p in profiles) / len(profiles)) if profiles else 0,
            top_users=top_users,
        )

    async def dashboard(self) -> Dict[str, Any]:
        """Admin dashboard header: platform stats and the newest accounts"""
        summary = await self.summary()
        users = await self.users.query([], order_by="created_at", descending=True, limit=RECENT_USERS)
        return {
            "stats": summary.model_dump(by_alias=True, exclude={"top_users"}),
            "recentUsers": [
                {
                    "id": doc["id"],
                    "name": doc.get("name", ""),
                    "email": doc.get("email", ""),
                    "created_at": doc.get("created_at"),
                    "subscription_status": doc.get("subscription_status", "free"),
                }
                for doc in users
            ],
        }

    async def enhanced_summary(self) -> Dict[str, Any]:
        """Platform summary broken down by page type, cue and chapter"""
        summary = await self.summary()
        engagements = await self.engagements.list_all()

        page_types: Dict[str, Dict[str, Any]] = {page_type.value: _page_bucket() for page_type in PageType}
        cues: Dict[str, Dict[str, Any]] = {}
        chapters: Dict[str, List[int]] = {}

        for doc in engagements:
            bucket = page_types.setdefault(doc.get("page_type", PageType.STORY.value), _page_bucket())
            interactions = doc.get("interactions", [])
            bucket["total_visits"] += 1
            bucket["total_time"] += doc.get("time_on_page", 0)
            bucket["total_interactions"] += len(interactions)
            if doc.get("completion_status") == CompletionStatus.COMPLETED.value:
                bucket["completed"] += 1

            for interaction in interactions:
                if interaction.get("type") != "cue" or not interaction.get("element"):
                    continue
                cue = cues.setdefault(interaction["element"], {"cue_name": interaction["element"], "total_encounters": 0})
                cue["total_encounters"] += 1

            if doc.get("chapter_name"):
                chapters.setdefault(doc["chapter_name"], []).append(doc.get("engagement_score", 0))

        page_type_metrics = {}
        for name, bucket in page_types.items():
            visits = bucket["total_visits"]
            page_type_metrics[name] = {
                "total_visits": visits,
                "total_interactions": bucket["total_interactions"],
                "average_time": round(bucket["total_time"] / visits, 1) if visits else 0,
                "completion_rate": round(100 * bucket["completed"] / visits) if visits else 0,
            }

        chapter_scores = sorted(
            ((name, sum(scores) / len(scores)) for name, scores in chapters.items()),
            key=lambda item: item[1],
            reverse=True,
        )

        return {
            "total_users": summary.total_users,
            "active_users_last_7_days": summary.active_users,
            "total_reading_sessions": summary.total_sessions,
            "total_reading_time_hours": round(summary.total_reading_time / 3600),
            "page_type_metrics": page_type_metrics,
            "cue_analytics": sorted(cues.values(), key=lambda c: c["total_encounters"], reverse=True),
            "most_engaging_chapters": [name for name, _ in chapter_scores[:TOP_USERS]],
            "generated_at": to_iso(self.clock()),
        }

    async def list_user_summaries(self) -> List[Dict[str, Any]]:
        """Every user with their reading totals, for the admin user list"""
        summaries = []
        for doc in await self.users.list_all():
            rows = await self.progress.get_all_by_user(doc["id"])
            last_read = max((r.get("last_read_at") for r in rows if r.get("last_read_at")), default=None)
            summaries.append({
                "id": doc["id"],
                "name": doc.get("name", ""),
                "email": doc.get("email", ""),
                "role": doc.get("role", "user"),
                "subscription_status": doc.get("subscription_status", "free"),
                "created_at": doc.get("created_at"),
                "last_active": last_read,
                "total_reading_time": sum(r.get("total_time_spent", 0) for r in rows),
                "books_read": sum(1 for r in rows if r.get("completion_percentage", 0) >= 100),
            })
        return summaries
