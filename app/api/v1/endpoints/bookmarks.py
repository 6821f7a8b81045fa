"""
Bookmarks management endpoints (session token)
"""
from typing import List
from fastapi import APIRouter, Depends

from ....models.bookmark import BookmarkCreate, BookmarkResponse, BookmarkUpdate, UserBookmarkCreate
from ....models.user import User
from ....services.bookmark_service import BookmarkService
from ..dependencies import get_bookmark_service
from .auth import get_current_user

router = APIRouter()


@router.get("/book/{book_id}", response_model=List[BookmarkResponse])
async def get_bookmarks_for_book(
    book_id: str,
    current_user: User = Depends(get_current_user),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    """Get all bookmarks for a specific book, by page"""
    bookmarks = await bookmark_service.list_for_book(current_user.id, book_id)
    return [BookmarkResponse.from_bookmark(b) for b in bookmarks]


@router.post("", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    bookmark_data: UserBookmarkCreate,
    current_user: User = Depends(get_current_user),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    """Create a new bookmark"""
    bookmark = await bookmark_service.add(
        current_user.id,
        bookmark_data.book_id,
        BookmarkCreate(**bookmark_data.model_dump(exclude={"book_id"})),
    )
    return BookmarkResponse.from_bookmark(bookmark)


@router.put("/{bookmark_id}", response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: str,
    updates: BookmarkUpdate,
    current_user: User = Depends(get_current_user),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    """Change a bookmark's note, type or metadata"""
    bookmark = await bookmark_service.update(current_user.id, bookmark_id, updates)
    return BookmarkResponse.from_bookmark(bookmark)


@router.delete("/{bookmark_id}")
async def delete_bookmark(
    bookmark_id: str,
    current_user: User = Depends(get_current_user),
    bookmark_service: BookmarkService = Depends(get_bookmark_service),
):
    """Delete a bookmark"""
    await bookmark_service.delete(current_user.id, bookmark_id)
    return {"success": True, "message": "Bookmark deleted successfully"}
