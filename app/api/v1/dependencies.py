"""
Service providers for the v1 endpoints

Every service is built per request on top of the shared store and clock,
both of which tests replace through ``app.dependency_overrides``.
"""
from fastapi import Depends, Request

from ...core.clock import Clock, utcnow
from ...core.config import settings
from ...services.analytics_service import AnalyticsService
from ...services.auth_service import AuthService
from ...services.base.store import DocumentStore, get_store
from ...services.book_access_service import BookAccessService
from ...services.book_service import BookService
from ...services.bookmark_service import BookmarkService
from ...services.progress_service import ProgressService
from ...services.settings_service import SystemSettingsService


def get_clock() -> Clock:
    return utcnow


def get_settings_service(store: DocumentStore = Depends(get_store), clock: Clock = Depends(get_clock)) -> SystemSettingsService:
    return SystemSettingsService(store, clock)


def get_auth_service(
    store: DocumentStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings_service: SystemSettingsService = Depends(get_settings_service),
) -> AuthService:
    return AuthService(store, clock, settings_service=settings_service)


def get_book_service(store: DocumentStore = Depends(get_store), clock: Clock = Depends(get_clock)) -> BookService:
    return BookService(store, clock)


def get_bookmark_service(store: DocumentStore = Depends(get_store), clock: Clock = Depends(get_clock)) -> BookmarkService:
    return BookmarkService(store, clock)


def get_analytics_service(store: DocumentStore = Depends(get_store), clock: Clock = Depends(get_clock)) -> AnalyticsService:
    return AnalyticsService(store, clock)


def get_progress_service(
    store: DocumentStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> ProgressService:
    return ProgressService(store, clock, bookmark_service, analytics_service)


def get_book_access_service(
    store: DocumentStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
    settings_service: SystemSettingsService = Depends(get_settings_service),
    auth_service: AuthService = Depends(get_auth_service),
    book_service: BookService = Depends(get_book_service),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
    progress_service: ProgressService = Depends(get_progress_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
) -> BookAccessService:
    return BookAccessService(
        store,
        clock,
        settings_service=settings_service,
        auth_service=auth_service,
        book_service=book_service,
        bookmark_service=bookmark_service,
        progress_service=progress_service,
        analytics_service=analytics_service,
    )


def platform_base_url(request: Request) -> str:
    """Public URL of the platform; the request's own origin unless configured"""
    if settings.PLATFORM_BASE_URL:
        return settings.PLATFORM_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")


def get_return_url(request: Request) -> str:
    return f"{platform_base_url(request)}{settings.RETURN_PATH}"
