"""
Bookmark data models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class BookmarkType(str, Enum):
    PAGE_SAVE = "page_save"
    NOTE = "note"
    HIGHLIGHT = "highlight"
    INTERACTIVE_CUE = "interactive_cue"


class Position(BaseModel):
    x: float
    y: float


class BookmarkMetadata(BaseModel):
    cue_name: Optional[str] = None
    highlight_text: Optional[str] = None
    position: Optional[Position] = None


class Bookmark(BaseModel):
    id: str
    user_id: str
    book_id: str
    page: int
    chapter: Optional[str] = None
    note: Optional[str] = None
    bookmark_type: BookmarkType = BookmarkType.PAGE_SAVE
    metadata: Optional[BookmarkMetadata] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BookmarkCreate(BaseModel):
    page: int = Field(..., ge=0)
    chapter: Optional[str] = None
    note: Optional[str] = Field(None, max_length=1000)
    bookmark_type: BookmarkType = BookmarkType.PAGE_SAVE
    metadata: Optional[BookmarkMetadata] = None


class UserBookmarkCreate(BookmarkCreate):
    """Session-authenticated variant: the book is named explicitly"""
    book_id: str


class BookmarkUpdate(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)
    bookmark_type: Optional[BookmarkType] = None
    metadata: Optional[BookmarkMetadata] = None


class EmbeddedBookmark(BaseModel):
    """Bookmark carried inside a progress update"""
    page: int = Field(..., ge=0)
    chapter: Optional[str] = None
    note: Optional[str] = None


class BookmarkResponse(BaseModel):
    id: str
    page: int
    chapter: Optional[str] = None
    note: Optional[str] = None
    bookmark_type: BookmarkType
    metadata: Optional[BookmarkMetadata] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_bookmark(cls, bookmark: Bookmark) -> "BookmarkResponse":
        return cls(**bookmark.model_dump(exclude={"user_id", "book_id"}))


class AddBookmarkRequest(BaseModel):
    token: str
    bookmark: BookmarkCreate


class UpdateBookmarkRequest(BaseModel):
    token: str
    bookmark_id: str
    updates: BookmarkUpdate


class DeleteBookmarkRequest(BaseModel):
    token: str
    bookmark_id: str
