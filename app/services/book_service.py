"""
Book catalog and purchase entitlements
"""
import logging
from datetime import timedelta
from typing import List, Optional

from ..core.clock import Clock, parse_datetime, to_iso, utcnow
from ..core.config import settings
from ..core.exceptions import ResourceNotFoundException
from ..models.book import Book, Purchase, PurchaseCreate, UserBook
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore

logger = logging.getLogger(__name__)


def default_catalog() -> List[Book]:
    return [
        Book(
            id="wtbtg",
            title="Where the Brave Things Grow",
            author="Brave Things Lab Team",
            description=(
                "An interactive journey teaching mindfulness, emotional regulation, "
                "and social skills through forest adventures with Mila the Squirrel and friends."
            ),
            external_url=settings.BOOK_RENDERER_URL,
            total_pages=54,
        ),
    ]


def purchase_id(user_id: str, book_id: str) -> str:
    return f"{user_id}-{book_id}"


class BookService:
    """Service for the book catalog and who may read what"""

    def __init__(self, store: DocumentStore, clock: Clock = utcnow):
        self.clock = clock
        self.books = DocumentBaseService(store, "books", clock)
        self.purchases = DocumentBaseService(store, "purchases", clock)
        self.progress = DocumentBaseService(store, "reading_progress", clock)

    async def seed_catalog(self) -> int:
        """Add missing default catalog entries; returns how many were added"""
        added = 0
        for book in default_catalog():
            if await self.books.find_by_id(book.id) is None:
                await self.books.create(book.model_dump(), doc_id=book.id)
                added += 1
        if added:
            logger.info(f"✅ Seeded {added} catalog books")
        return added

    async def get_book(self, book_id: str) -> Optional[Book]:
        data = await self.books.find_by_id(book_id)
        return Book(**data) if data else None

    async def get_active_book(self, book_id: str) -> Book:
        book = await self.get_book(book_id)
        if book is None or not book.is_active:
            raise ResourceNotFoundException("Book not found", details={"book_id": book_id})
        return book

    async def list_books(self) -> List[Book]:
        return [Book(**doc) for doc in await self.books.list_all() if doc.get("is_active", True)]

    async def grant_access(self, purchase: PurchaseCreate) -> Purchase:
        """Record a purchase (or free grant). Re-granting replaces the previous entitlement."""
        await self.get_active_book(purchase.book_id)

        now = self.clock()
        access_expires = None
        if purchase.access_days:
            access_expires = to_iso(now + timedelta(days=purchase.access_days))

        record = await self.purchases.create(
            {
                "user_id": purchase.user_id,
                "book_id": purchase.book_id,
                "payment_reference": purchase.payment_reference,
                "access_type": purchase.access_type.value,
                "purchased_at": to_iso(now),
                "access_expires": access_expires,
            },
            doc_id=purchase_id(purchase.user_id, purchase.book_id),
        )
        logger.info(f"Granted {purchase.access_type.value} access to {purchase.book_id} for user {purchase.user_id}")
        return Purchase(**record)

    async def find_active_purchase(self, user_id: str, book_id: str) -> Optional[Purchase]:
        """Purchase for the pair whose access has not expired"""
        now = self.clock()
        docs = await self.purchases.query([("user_id", "==", user_id), ("book_id", "==", book_id)])
        for doc in docs:
            expires = parse_datetime(doc.get("access_expires"))
            if expires is None or expires > now:
                return Purchase(**doc)
        return None

    async def user_books(self, user_id: str) -> List[UserBook]:
        """Books the user currently has access to, with their progress"""
        now = self.clock()
        books = []
        for doc in await self.purchases.get_all_by_user(user_id):
            expires = parse_datetime(doc.get("access_expires"))
            if expires is not None and expires <= now:
                continue
            book = await self.get_book(doc["book_id"])
            if book is None or not book.is_active:
                continue
            progress = await self.progress.find_by_id(f"{user_id}-{book.id}") or {}
            books.append(UserBook(
                id=book.id,
                title=book.title,
                author=book.author,
                description=book.description,
                access_type=doc.get("access_type", "purchased"),
                access_expires=expires,
                progress=progress.get("completion_percentage", 0),
                last_read_at=parse_datetime(progress.get("last_read_at")),
            ))
        return books
