"""
Reading progress sync

One row per (user, book). Position fields are last-write-wins by arrival;
time spent accumulates.
"""
import logging
from typing import List, Optional

from ..core.clock import Clock, utcnow
from ..core.exceptions import BraveThingsException
from ..models.book_access import BookAccessClaims, Permission, ProgressResponse, ProgressSnapshot
from ..models.bookmark import BookmarkResponse, EmbeddedBookmark
from .analytics_service import AnalyticsService
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore
from .bookmark_service import BookmarkService

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_CHAPTER = "Chapter 1"


def progress_id(user_id: str, book_id: str) -> str:
    return f"{user_id}-{book_id}"


class ProgressService:
    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utcnow,
        bookmark_service: Optional[BookmarkService] = None,
        analytics_service: Optional[AnalyticsService] = None,
    ):
        self.documents = DocumentBaseService(store, "reading_progress", clock)
        self.bookmarks = bookmark_service or BookmarkService(store, clock)
        self.analytics = analytics_service or AnalyticsService(store, clock)

    async def update_progress(
        self,
        claims: BookAccessClaims,
        progress: float,
        current_page: Optional[int],
        current_chapter: Optional[str],
        time_spent: Optional[int],
        bookmarks: Optional[List[EmbeddedBookmark]] = None,
    ) -> ProgressResponse:
        """Token-authenticated progress write from the external renderer"""
        claims.require(Permission.PROGRESS)
        return await self.record_progress(
            claims.user_id, claims.book_id, progress, current_page, current_chapter, time_spent, bookmarks
        )

    async def record_progress(
        self,
        user_id: str,
        book_id: str,
        progress: float,
        current_page: Optional[int],
        current_chapter: Optional[str],
        time_spent: Optional[int],
        bookmarks: Optional[List[EmbeddedBookmark]] = None,
    ) -> ProgressResponse:
        doc_id = progress_id(user_id, book_id)
        existing = await self.documents.find_by_id(doc_id) or {}

        row = {
            "user_id": user_id,
            "book_id": book_id,
            "completion_percentage": min(100.0, max(0.0, float(progress))),
            "current_spread": current_page if current_page is not None else existing.get("current_spread", DEFAULT_PAGE),
            "current_chapter": current_chapter or existing.get("current_chapter", DEFAULT_CHAPTER),
            "total_time_spent": existing.get("total_time_spent", 0) + max(0, time_spent or 0),
            "last_read_at": self.documents.now_iso(),
        }
        if existing.get("created_at"):
            row["created_at"] = existing["created_at"]
        await self.documents.create(row, doc_id=doc_id)

        if bookmarks:
            added = await self.bookmarks.merge_embedded(user_id, book_id, bookmarks)
            if added:
                logger.debug(f"Merged {added} embedded bookmarks for {doc_id}")

        try:
            await self.analytics.touch_open_session(user_id, book_id, row["current_spread"])
        except BraveThingsException as e:
            logger.warning(f"⚠️  Could not update open reading session for {doc_id}: {e.message}")

        return await self.get_progress(user_id, book_id)

    async def get_progress(self, user_id: str, book_id: str) -> ProgressResponse:
        row = await self.documents.find_by_id(progress_id(user_id, book_id))
        bookmarks = [
            BookmarkResponse.from_bookmark(b) for b in await self.bookmarks.list_for_book(user_id, book_id)
        ]
        if row is None:
            return ProgressResponse(user_id=user_id, book_id=book_id, bookmarks=bookmarks)

        return ProgressResponse(
            user_id=user_id,
            book_id=book_id,
            progress=row.get("completion_percentage", 0),
            current_page=row.get("current_spread", DEFAULT_PAGE),
            current_chapter=row.get("current_chapter", DEFAULT_CHAPTER),
            time_spent=row.get("total_time_spent", 0),
            last_read_at=row.get("last_read_at"),
            bookmarks=bookmarks,
        )

    async def snapshot(self, user_id: str, book_id: str) -> ProgressSnapshot:
        """Progress in the shape validate-enhanced returns; defaults for a first read"""
        row = await self.documents.find_by_id(progress_id(user_id, book_id))
        if row is None:
            return ProgressSnapshot(last_read_at=self.documents.now_iso())
        return ProgressSnapshot(
            current_page=row.get("current_spread") or DEFAULT_PAGE,
            current_chapter=row.get("current_chapter") or DEFAULT_CHAPTER,
            completion_percentage=row.get("completion_percentage", 0),
            time_spent=row.get("total_time_spent", 0),
            last_read_at=row.get("last_read_at"),
        )
