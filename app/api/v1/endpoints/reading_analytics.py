"""
Reading session and progress endpoints for the platform itself (session token)
"""
from fastapi import APIRouter, Depends

from ....core.exceptions import AuthorizationException
from ....models.book_access import ProgressResponse
from ....models.reading_analytics import (
    EndSessionResult, FinalMetrics, ProgressUpdate, ReadingSession, SessionStart,
)
from ....models.user import User
from ....services.analytics_service import AnalyticsService
from ....services.book_service import BookService
from ....services.progress_service import ProgressService
from ..dependencies import get_analytics_service, get_book_service, get_progress_service
from .auth import get_current_user

router = APIRouter()


async def _require_access(book_service: BookService, user: User, book_id: str) -> None:
    if await book_service.find_active_purchase(user.id, book_id) is None:
        raise AuthorizationException("Book not purchased or access expired", details={"book_id": book_id})


@router.post("/sessions", response_model=ReadingSession, status_code=201)
async def start_reading_session(
    request: SessionStart,
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Start a reading session"""
    await _require_access(book_service, current_user, request.book_id)
    return await analytics_service.start_session(
        current_user.id, request.book_id, request.device_type, request.browser_info
    )


@router.put("/sessions/{session_id}", response_model=EndSessionResult)
async def end_reading_session(
    session_id: str,
    metrics: FinalMetrics,
    current_user: User = Depends(get_current_user),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """End a reading session. Ending it twice is harmless."""
    return await analytics_service.end_reading_session(
        session_id,
        current_user.id,
        metrics.total_duration,
        metrics.pages_visited,
        metrics.final_interactions,
    )


@router.get("/progress/{book_id}", response_model=ProgressResponse)
async def get_reading_progress(
    book_id: str,
    current_user: User = Depends(get_current_user),
    progress_service: ProgressService = Depends(get_progress_service),
):
    return await progress_service.get_progress(current_user.id, book_id)


@router.put("/progress/{book_id}", response_model=ProgressResponse)
async def update_reading_progress(
    book_id: str,
    update: ProgressUpdate,
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
    progress_service: ProgressService = Depends(get_progress_service),
):
    await _require_access(book_service, current_user, book_id)
    return await progress_service.record_progress(
        current_user.id,
        book_id,
        update.progress,
        update.current_page,
        update.current_chapter,
        update.time_spent,
    )
