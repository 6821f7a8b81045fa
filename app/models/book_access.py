"""
Book access token models (wire shapes use the external renderer's camelCase)
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

from ..core.exceptions import AuthorizationException
from .bookmark import BookmarkResponse, EmbeddedBookmark


class Permission(str, Enum):
    READ = "read"
    BOOKMARK = "bookmark"
    PROGRESS = "progress"


DEFAULT_PERMISSIONS = [Permission.READ, Permission.BOOKMARK, Permission.PROGRESS]


class BookAccessClaims(BaseModel):
    """Decoded, structurally valid book access token"""
    user_id: str = Field(..., alias="sub")
    book_id: str = Field(..., alias="bookId")
    purchase_id: str = Field(..., alias="purchaseId")
    permissions: List[Permission]
    typ: str
    iat: int
    exp: Optional[int] = None

    class Config:
        populate_by_name = True

    def require(self, permission: Permission) -> None:
        if permission not in self.permissions:
            raise AuthorizationException(
                f"No {permission.value} permission",
                details={"permission": permission.value},
            )


class GenerateTokenRequest(BaseModel):
    book_id: str = Field(..., alias="bookId", min_length=1)

    class Config:
        populate_by_name = True


class GeneratedToken(BaseModel):
    success: bool = True
    token: str
    expires_at: int = Field(..., alias="expiresAt")  # epoch seconds, 0 = never
    book_url: str = Field(..., alias="bookUrl")
    reused: bool = False

    class Config:
        populate_by_name = True


class TokenValidationRequest(BaseModel):
    token: str
    book_id: str = Field(..., alias="bookId")
    device_type: Optional[str] = None
    browser_info: Optional[str] = None

    class Config:
        populate_by_name = True


class TokenUser(BaseModel):
    id: str
    name: str
    email: str


class ReturnInfo(BaseModel):
    url: str
    label: str
    platform: str


class ProgressSnapshot(BaseModel):
    current_page: int = 1
    current_chapter: str = "Chapter 1"
    completion_percentage: float = 0
    time_spent: int = 0
    last_read_at: Optional[str] = None


class TokenValidation(BaseModel):
    valid: bool
    user_id: Optional[str] = Field(None, alias="userId")
    book_id: Optional[str] = Field(None, alias="bookId")
    permissions: Optional[List[Permission]] = None
    user: Optional[TokenUser] = None
    # enhanced variant only
    bookmarks: Optional[List[BookmarkResponse]] = None
    progress: Optional[ProgressSnapshot] = None
    analytics_session_id: Optional[str] = None
    return_info: Optional[ReturnInfo] = None

    class Config:
        populate_by_name = True


class UpdateProgressRequest(BaseModel):
    token: str
    progress: float = Field(..., ge=0, le=100)
    current_page: Optional[int] = Field(None, alias="currentPage", ge=0)
    current_chapter: Optional[str] = Field(None, alias="currentChapter")
    time_spent: Optional[int] = Field(0, alias="timeSpent", ge=0)
    bookmarks: Optional[List[EmbeddedBookmark]] = None

    class Config:
        populate_by_name = True


class ProgressResponse(BaseModel):
    """Reading progress in the renderer's wire shape"""
    user_id: str = Field(..., alias="userId")
    book_id: str = Field(..., alias="bookId")
    progress: float = 0
    current_page: int = Field(1, alias="currentPage")
    current_chapter: str = Field("Chapter 1", alias="currentChapter")
    time_spent: int = Field(0, alias="timeSpent")
    last_read_at: Optional[str] = Field(None, alias="lastReadAt")
    bookmarks: List[BookmarkResponse] = []

    class Config:
        populate_by_name = True


class TokenRequest(BaseModel):
    token: str
