"""
Bookmarks owned by a user within one book
"""
import logging
import uuid
from typing import Iterable, List

from ..core.clock import Clock, utcnow
from ..core.exceptions import ResourceNotFoundException
from ..core.security import sanitize_input
from ..models.bookmark import (
    Bookmark, BookmarkCreate, BookmarkType, BookmarkUpdate, EmbeddedBookmark,
)
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore

logger = logging.getLogger(__name__)


class BookmarkService:
    def __init__(self, store: DocumentStore, clock: Clock = utcnow):
        self.documents = DocumentBaseService(store, "bookmarks", clock)

    async def list_for_book(self, user_id: str, book_id: str) -> List[Bookmark]:
        docs = await self.documents.query([("user_id", "==", user_id), ("book_id", "==", book_id)])
        bookmarks = [Bookmark(**doc) for doc in docs]
        bookmarks.sort(key=lambda b: (b.page, b.created_at))
        return bookmarks

    async def add(self, user_id: str, book_id: str, bookmark: BookmarkCreate) -> Bookmark:
        data = bookmark.model_dump(mode="json")
        if data.get("note"):
            data["note"] = sanitize_input(data["note"])
        data.update({"user_id": user_id, "book_id": book_id})

        created = await self.documents.create(data, doc_id=f"bookmark_{uuid.uuid4().hex}")
        logger.debug(f"Bookmark {created['id']} added on page {bookmark.page}")
        return Bookmark(**created)

    async def get_owned(self, user_id: str, bookmark_id: str) -> Bookmark:
        data = await self.documents.find_by_id(bookmark_id)
        if data is None or data.get("user_id") != user_id:
            raise ResourceNotFoundException(
                "Bookmark not found or access denied",
                details={"bookmark_id": bookmark_id},
            )
        return Bookmark(**data)

    async def update(self, user_id: str, bookmark_id: str, updates: BookmarkUpdate) -> Bookmark:
        await self.get_owned(user_id, bookmark_id)

        changes = updates.model_dump(mode="json", exclude_none=True)
        if "note" in changes:
            changes["note"] = sanitize_input(changes["note"])
        updated = await self.documents.update(bookmark_id, changes)
        return Bookmark(**updated)

    async def delete(self, user_id: str, bookmark_id: str) -> None:
        await self.get_owned(user_id, bookmark_id)
        await self.documents.delete(bookmark_id)

    async def merge_embedded(self, user_id: str, book_id: str, embedded: Iterable[EmbeddedBookmark]) -> int:
        """Add bookmarks whose (page, chapter) is not bookmarked yet; returns how many were added"""
        existing = {(b.page, b.chapter) for b in await self.list_for_book(user_id, book_id)}
        added = 0
        for item in embedded:
            key = (item.page, item.chapter)
            if key in existing:
                continue
            await self.add(user_id, book_id, BookmarkCreate(
                page=item.page,
                chapter=item.chapter,
                note=item.note,
                bookmark_type=BookmarkType.PAGE_SAVE,
            ))
            existing.add(key)
            added += 1
        return added
