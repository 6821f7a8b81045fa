"""
External book integration endpoints

Called by the platform UI (token generation, with a session token) and by
the external book renderer (everything else, with a book access token).
Validation endpoints answer ``{"valid": false}`` rather than erroring.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from ....core.clock import Clock, to_iso
from ....core.exceptions import AuthorizationException
from ....core.tokens import BOOK_ACCESS_TOKEN, peek_token_type
from ....models.book_access import (
    GeneratedToken, GenerateTokenRequest, Permission, ProgressResponse,
    TokenRequest, TokenValidation, TokenValidationRequest, UpdateProgressRequest,
)
from ....models.bookmark import (
    AddBookmarkRequest, BookmarkResponse, DeleteBookmarkRequest, UpdateBookmarkRequest,
)
from ....models.reading_analytics import (
    AnalyticsSummary, EndSessionRequest, EndSessionResult, StartSessionRequest,
    TrackAnalyticsRequest, TrackResult,
)
from ....models.user import User
from ....services.analytics_service import AnalyticsService
from ....services.auth_service import AuthService
from ....services.book_access_service import BookAccessService
from ....services.bookmark_service import BookmarkService
from ....services.progress_service import ProgressService
from ..dependencies import (
    get_analytics_service, get_auth_service, get_book_access_service,
    get_bookmark_service, get_clock, get_progress_service, get_return_url,
)
from .auth import get_bearer_token, get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate-token", response_model=GeneratedToken)
async def generate_token(
    request: GenerateTokenRequest,
    current_user: User = Depends(get_current_user),
    return_url: str = Depends(get_return_url),
    access_service: BookAccessService = Depends(get_book_access_service),
):
    """Token and launch URL for a purchased book (reuses the live token if any)"""
    return await access_service.generate_token(current_user.id, request.book_id, return_url)


@router.post("/validate-token", response_model=TokenValidation, response_model_exclude_none=True)
async def validate_token(
    request: TokenValidationRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
):
    return await access_service.validate_token(request.token, request.book_id)


@router.post("/validate-enhanced", response_model=TokenValidation, response_model_exclude_none=True)
async def validate_enhanced(
    request: TokenValidationRequest,
    return_url: str = Depends(get_return_url),
    user_agent: Optional[str] = Header(None),
    access_service: BookAccessService = Depends(get_book_access_service),
):
    """Validate and return bookmarks, progress, a new analytics session and return info"""
    return await access_service.validate_enhanced(
        request.token,
        request.book_id,
        return_url,
        device_type=request.device_type,
        browser_info=request.browser_info or user_agent,
    )


@router.post("/update-progress")
async def update_progress(
    request: UpdateProgressRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    progress_service: ProgressService = Depends(get_progress_service),
):
    """Reading position sync from the renderer"""
    claims = access_service.decode_claims(request.token)
    progress = await progress_service.update_progress(
        claims,
        request.progress,
        request.current_page,
        request.current_chapter,
        request.time_spent,
        request.bookmarks,
    )
    return {"success": True, "progress": progress.model_dump(mode="json", by_alias=True)}


@router.get("/progress/{user_id}/{book_id}", response_model=ProgressResponse)
async def get_progress(
    user_id: str,
    book_id: str,
    token: str = Depends(get_bearer_token),
    access_service: BookAccessService = Depends(get_book_access_service),
    auth_service: AuthService = Depends(get_auth_service),
    progress_service: ProgressService = Depends(get_progress_service),
):
    """
    Progress for a user and book.

    Readable with that user's session token, an admin session token, or a
    book access token issued to that user for that book.
    """
    if peek_token_type(token) == BOOK_ACCESS_TOKEN:
        claims = access_service.decode_claims(token)
        if claims.user_id != user_id or claims.book_id != book_id:
            raise AuthorizationException("Token does not grant access to this progress")
        access_service.require_permission(claims, Permission.READ)
    else:
        caller = await auth_service.verify(token)
        if caller.id != user_id and not caller.is_admin:
            raise AuthorizationException("Not allowed to read another user's progress")

    return await progress_service.get_progress(user_id, book_id)


# Bookmarks (book access token in the body)

@router.post("/bookmarks/get")
async def get_bookmarks(
    request: TokenRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    claims = access_service.decode_claims(request.token)
    access_service.require_permission(claims, Permission.BOOKMARK)
    bookmarks = await bookmark_service.list_for_book(claims.user_id, claims.book_id)
    return {"success": True, "bookmarks": [BookmarkResponse.from_bookmark(b) for b in bookmarks]}


@router.post("/bookmarks/add")
async def add_bookmark(
    request: AddBookmarkRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    claims = access_service.decode_claims(request.token)
    access_service.require_permission(claims, Permission.BOOKMARK)
    bookmark = await bookmark_service.add(claims.user_id, claims.book_id, request.bookmark)
    return {"success": True, "bookmark": BookmarkResponse.from_bookmark(bookmark)}


@router.post("/bookmarks/update")
async def update_bookmark(
    request: UpdateBookmarkRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    claims = access_service.decode_claims(request.token)
    access_service.require_permission(claims, Permission.BOOKMARK)
    bookmark = await bookmark_service.update(claims.user_id, request.bookmark_id, request.updates)
    return {"success": True, "bookmark": BookmarkResponse.from_bookmark(bookmark)}


@router.post("/bookmarks/delete")
async def delete_bookmark(
    request: DeleteBookmarkRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    claims = access_service.decode_claims(request.token)
    access_service.require_permission(claims, Permission.BOOKMARK)
    await bookmark_service.delete(claims.user_id, request.bookmark_id)
    return {"success": True}


# Analytics

@router.post("/analytics/track", response_model=TrackResult, response_model_exclude_none=True)
async def track_analytics(
    request: TrackAnalyticsRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Page engagement telemetry. Storage problems show up as ``analytics_processed: false``."""
    claims = access_service.decode_claims(request.token)
    return await analytics_service.track_analytics(
        claims.user_id,
        claims.book_id,
        request.session_id,
        request.page_data,
        request.timing_data,
        request.interactions,
    )


@router.post("/analytics/start-session")
async def start_session(
    request: StartSessionRequest,
    user_agent: Optional[str] = Header(None),
    access_service: BookAccessService = Depends(get_book_access_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    claims = access_service.decode_claims(request.token)
    session = await analytics_service.start_session(
        claims.user_id,
        claims.book_id,
        device_type=request.device_type,
        browser_info=request.browser_info or user_agent,
    )
    return {"success": True, "session_id": session.id, "user_id": claims.user_id}


@router.post("/analytics/end-session", response_model=EndSessionResult)
async def end_session(
    request: EndSessionRequest,
    access_service: BookAccessService = Depends(get_book_access_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    claims = access_service.decode_claims(request.token)
    metrics = request.final_metrics
    return await analytics_service.end_reading_session(
        request.session_id,
        claims.user_id,
        metrics.total_duration,
        metrics.pages_visited,
        metrics.final_interactions,
    )


@router.get("/analytics/summary", response_model=AnalyticsSummary)
async def analytics_summary(
    admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Platform-wide reading analytics (admin only)"""
    return await analytics_service.summary()


@router.get("/analytics/enhanced-summary")
async def enhanced_analytics_summary(
    admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Summary broken down by page type, cue and chapter (admin only)"""
    return await analytics_service.enhanced_summary()


@router.get("/analytics/user/{user_id}")
async def user_analytics(
    user_id: str,
    admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """One user's accumulated analytics (admin only)"""
    return await analytics_service.user_analytics(user_id)


@router.get("/health")
async def health(clock: Clock = Depends(get_clock)):
    return {"status": "healthy", "service": "book-access", "timestamp": to_iso(clock())}
