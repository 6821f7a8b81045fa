"""
Book access tokens

A book access token lets an external book renderer act for one user on one
book. Issuing is a two-step affair: ``find_reusable_token`` looks for a
still-valid token already issued for the (user, book) pair and hands it back
unchanged, so external trackers see a stable identifier; only when there is
none does ``mint_token`` sign a new one.

Claims::

    {"sub": user_id, "bookId": ..., "purchaseId": ...,
     "permissions": ["read", "bookmark", "progress"],
     "typ": "book_access", "iat": ..., "exp": ...}

``exp`` is omitted when the admin expiry setting is 0 days; such tokens
never expire and are reported with ``expiresAt = 0``.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from pydantic import ValidationError

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.exceptions import AuthorizationException, BraveThingsException, InvalidTokenException
from ..core.tokens import BOOK_ACCESS_TOKEN, decode_token, encode_token
from ..models.book_access import (
    DEFAULT_PERMISSIONS, BookAccessClaims, GeneratedToken, Permission,
    ReturnInfo, TokenUser, TokenValidation,
)
from ..models.bookmark import BookmarkResponse
from .analytics_service import AnalyticsService
from .auth_service import AuthService
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore
from .book_service import BookService
from .bookmark_service import BookmarkService
from .progress_service import ProgressService
from .settings_service import SystemSettingsService

logger = logging.getLogger(__name__)

INVALID = TokenValidation(valid=False)


def token_key(user_id: str, book_id: str) -> str:
    return f"{user_id}-{book_id}"


def build_book_url(external_url: str, token: str, return_url: str) -> str:
    query = urlencode({
        "token": token,
        "platform": settings.PLATFORM_ID,
        "returnUrl": return_url,
        "returnLabel": settings.RETURN_LABEL,
    })
    separator = "&" if "?" in external_url else "?"
    return f"{external_url}{separator}{query}"


class BookAccessService:
    """Issues and validates book access tokens"""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utcnow,
        settings_service: Optional[SystemSettingsService] = None,
        auth_service: Optional[AuthService] = None,
        book_service: Optional[BookService] = None,
        bookmark_service: Optional[BookmarkService] = None,
        progress_service: Optional[ProgressService] = None,
        analytics_service: Optional[AnalyticsService] = None,
    ):
        self.clock = clock
        self.tokens = DocumentBaseService(store, "book_access_tokens", clock)
        self.settings_service = settings_service or SystemSettingsService(store, clock)
        self.auth_service = auth_service or AuthService(store, clock, settings_service=self.settings_service)
        self.book_service = book_service or BookService(store, clock)
        self.bookmark_service = bookmark_service or BookmarkService(store, clock)
        self.analytics_service = analytics_service or AnalyticsService(store, clock)
        self.progress_service = progress_service or ProgressService(
            store, clock, self.bookmark_service, self.analytics_service
        )

    # Issuing

    async def generate_token(self, user_id: str, book_id: str, return_url: str) -> GeneratedToken:
        """
        Token for reading ``book_id``, reusing the pair's live token if any.

        Raises:
            AuthorizationException: no unexpired purchase of the book
            ResourceNotFoundException: the book is not in the active catalog
        """
        purchase = await self.book_service.find_active_purchase(user_id, book_id)
        if purchase is None:
            raise AuthorizationException(
                "Book not purchased or access expired",
                details={"book_id": book_id},
            )
        book = await self.book_service.get_active_book(book_id)

        record = await self.find_reusable_token(user_id, book_id)
        if record is not None:
            logger.info(f"🎫 Reusing book access token for user {user_id} on {book_id}")
            token, expires_at, reused = record["token"], record.get("expires_at") or 0, True
        else:
            token, expires_at = await self.mint_token(user_id, book_id, purchase.id)
            reused = False

        return GeneratedToken(
            token=token,
            expires_at=expires_at,
            book_url=build_book_url(book.external_url, token, return_url),
            reused=reused,
        )

    async def find_reusable_token(self, user_id: str, book_id: str) -> Optional[Dict[str, Any]]:
        """
        Stored token for the pair if it is unexpired and still verifies.

        Bumps ``last_used_at`` on a hit.
        """
        key = token_key(user_id, book_id)
        record = await self.tokens.find_by_id(key)
        if record is None:
            return None

        now_ts = int(self.clock().timestamp())
        expires_at = record.get("expires_at")
        if expires_at and expires_at <= now_ts:
            return None

        try:
            claims = self.decode_claims(record.get("token", ""))
        except InvalidTokenException:
            return None
        if claims.user_id != user_id or claims.book_id != book_id:
            return None

        await self.tokens.update(key, {"last_used_at": now_ts})
        return record

    async def mint_token(self, user_id: str, book_id: str, purchase_id: str) -> Tuple[str, int]:
        """Sign and store a fresh token; returns (token, expires_at epoch or 0)"""
        system = await self.settings_service.get()
        issued_at = self.clock()
        claims = {
            "sub": user_id,
            "bookId": book_id,
            "purchaseId": purchase_id,
            "permissions": [p.value for p in DEFAULT_PERMISSIONS],
            "typ": BOOK_ACCESS_TOKEN,
            "iat": int(issued_at.timestamp()),
        }
        expires_at = None
        if system.book_access_token_expiry_days > 0:
            expires_at = int((issued_at + timedelta(days=system.book_access_token_expiry_days)).timestamp())
            claims["exp"] = expires_at

        token = encode_token(claims)
        await self.tokens.create(
            {
                "user_id": user_id,
                "book_id": book_id,
                "token": token,
                "expires_at": expires_at,
                "last_used_at": claims["iat"],
            },
            doc_id=token_key(user_id, book_id),
        )
        logger.info(
            f"🎫 Issued book access token for user {user_id} on {book_id} "
            f"({'no expiry' if expires_at is None else f'{system.book_access_token_expiry_days} days'})"
        )
        return token, expires_at or 0

    # Validation

    def decode_claims(self, token: str) -> BookAccessClaims:
        """Strict decoder for token-authenticated calls. Raises InvalidTokenException."""
        payload = decode_token(token, BOOK_ACCESS_TOKEN, self.clock())
        try:
            return BookAccessClaims.model_validate(payload)
        except ValidationError:
            raise InvalidTokenException("Invalid token", details={"reason": "malformed claims"})

    @staticmethod
    def require_permission(claims: BookAccessClaims, permission: Permission) -> None:
        claims.require(permission)

    async def validate_token(self, token: str, book_id: str) -> TokenValidation:
        """Check a token presented for ``book_id``. Never raises; failures are ``valid=False``."""
        try:
            claims = self.decode_claims(token)
            if claims.book_id != book_id:
                logger.info(f"Token for {claims.book_id} presented for {book_id}")
                return INVALID

            user = await self.auth_service.get_user_by_id(claims.user_id)
            if user is None:
                return INVALID
        except BraveThingsException as e:
            logger.info(f"Book access token rejected: {e.message}")
            return INVALID
        except Exception as e:
            logger.error(f"❌ Unexpected error validating book access token: {type(e).__name__}: {e}")
            return INVALID

        return TokenValidation(
            valid=True,
            user_id=user.id,
            book_id=claims.book_id,
            permissions=claims.permissions,
            user=TokenUser(id=user.id, name=user.name, email=user.email),
        )

    async def validate_enhanced(
        self,
        token: str,
        book_id: str,
        return_url: str,
        device_type: Optional[str] = None,
        browser_info: Optional[str] = None,
    ) -> TokenValidation:
        """
        validate_token plus everything the renderer needs to resume reading:
        bookmarks, a progress snapshot, a new analytics session id and the
        return-navigation info. Never raises.
        """
        result = await self.validate_token(token, book_id)
        if not result.valid:
            return result

        try:
            bookmarks = await self.bookmark_service.list_for_book(result.user_id, book_id)
            progress = await self.progress_service.snapshot(result.user_id, book_id)
            session = await self.analytics_service.start_session(
                result.user_id, book_id, device_type=device_type, browser_info=browser_info
            )
        except BraveThingsException as e:
            logger.error(f"❌ Enhanced validation failed for user {result.user_id}: {e.message}")
            return INVALID

        return result.model_copy(update={
            "bookmarks": [BookmarkResponse.from_bookmark(b) for b in bookmarks],
            "progress": progress,
            "analytics_session_id": session.id,
            "return_info": ReturnInfo(url=return_url, label=settings.RETURN_LABEL, platform=settings.PLATFORM_NAME),
        })
