"""
Signed bearer tokens (HS256 JWTs via python-jose)

Session tokens and book access tokens share the signing key and are told
apart by their ``typ`` claim. Expiry is checked against the caller's clock
rather than the wall clock, and a token without ``exp`` never expires.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import settings
from .exceptions import InvalidTokenException

logger = logging.getLogger(__name__)

SESSION_TOKEN = "session"
BOOK_ACCESS_TOKEN = "book_access"


def encode_token(claims: Dict[str, Any]) -> str:
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str, now: datetime) -> Dict[str, Any]:
    """Verify signature, type and expiry. Raises InvalidTokenException."""
    if not token:
        raise InvalidTokenException("Missing token")

    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        logger.debug(f"Token rejected: {type(e).__name__}")
        raise InvalidTokenException("Invalid token")

    if claims.get("typ") != expected_type:
        raise InvalidTokenException("Invalid token", details={"reason": "wrong token type"})

    exp = claims.get("exp")
    if exp is not None:
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise InvalidTokenException("Invalid token", details={"reason": "malformed expiry"})
        if exp <= now.timestamp():
            raise InvalidTokenException("Token has expired")

    return claims


def peek_token_type(token: str) -> Optional[str]:
    """Unverified ``typ`` claim, used only to pick the right verifier"""
    try:
        return jwt.get_unverified_claims(token).get("typ")
    except JWTError:
        return None
