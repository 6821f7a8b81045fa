"""
Book catalog and purchase models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class AccessType(str, Enum):
    FREE = "free"
    PURCHASED = "purchased"


class Book(BaseModel):
    id: str
    title: str
    author: str
    description: Optional[str] = None
    external_url: str  # where the external renderer serves the book
    total_pages: int = 0
    is_active: bool = True


class Purchase(BaseModel):
    id: str
    user_id: str
    book_id: str
    payment_reference: Optional[str] = None
    access_type: AccessType = AccessType.PURCHASED
    purchased_at: datetime
    access_expires: Optional[datetime] = None  # None means permanent access


class PurchaseCreate(BaseModel):
    user_id: str
    book_id: str
    payment_reference: Optional[str] = None
    access_type: AccessType = AccessType.PURCHASED
    access_days: Optional[int] = Field(None, ge=1, description="Omit for permanent access")


class UserBook(BaseModel):
    """A book in the user's library, with their progress"""
    id: str
    title: str
    author: str
    description: Optional[str] = None
    access_type: AccessType
    access_expires: Optional[datetime] = None
    progress: float = 0
    last_read_at: Optional[datetime] = None
