"""
Main API router
"""
from fastapi import APIRouter

from .endpoints import admin, auth, book_access, bookmarks, reading_analytics

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(book_access.router, prefix="/book-access", tags=["book-access"])
api_router.include_router(bookmarks.router, prefix="/bookmarks", tags=["bookmarks"])
api_router.include_router(reading_analytics.router, prefix="/reading", tags=["reading-analytics"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
