"""
Password and token security helpers

Password hashes are PBKDF2-SHA256 with a fresh 16-byte salt per hash and a
fixed iteration count (``settings.PASSWORD_HASH_ROUNDS``, 29000 by default).
The stored string is passlib's modular-crypt format, which carries the round
count, the salt and the digest together::

    $pbkdf2-sha256$29000$<salt>$<digest>

Two hashes of the same password therefore never compare equal; always go
through :func:`verify_password`.
"""
import logging
import re
import secrets
from typing import Dict, List

from email_validator import EmailNotValidError, validate_email as _validate_email
from passlib.context import CryptContext
from pydantic import BaseModel

from .config import DEV_JWT_SECRET, settings
from .exceptions import ValidationException

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    pbkdf2_sha256__default_rounds=settings.PASSWORD_HASH_ROUNDS,
    pbkdf2_sha256__salt_size=16,
)

STRONG_PASSWORD_MIN_LENGTH = 8

COMMON_PASSWORDS = {
    "password", "password123", "123456", "123456789", "qwerty",
    "abc123", "password1", "admin", "welcome", "login",
}

_SYMBOL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


class PasswordStrength(BaseModel):
    valid: bool
    errors: List[str] = []


def hash_password(password: str) -> str:
    """Hash a password with a fresh salt. Rejects passwords that are too short."""
    if not password or len(password.strip()) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationException(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long",
            details={"fields": {"password": "too short"}},
        )
    return pwd_context.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a password against a stored hash. Fails closed."""
    if not password or not stored_hash:
        return False
    try:
        return pwd_context.verify(password, stored_hash)
    except Exception as e:
        # malformed or unknown hash format
        logger.warning(f"Password verification failed closed: {type(e).__name__}")
        return False


def validate_password_strength(password: str) -> PasswordStrength:
    """Collect every violated rule so the UI can render the full checklist"""
    if not password:
        return PasswordStrength(valid=False, errors=["Password is required"])

    errors = []
    if len(password) < STRONG_PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {STRONG_PASSWORD_MIN_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not _SYMBOL_RE.search(password):
        errors.append("Password must contain at least one special character")
    if password.lower() in COMMON_PASSWORDS:
        errors.append("Password is too common. Please choose a stronger password")

    return PasswordStrength(valid=not errors, errors=errors)


def generate_secure_token(length: int = 32) -> str:
    """Random hex token of ``length`` bytes (``2 * length`` characters)"""
    return secrets.token_hex(length)


def validate_email(email: str) -> str:
    """Return the normalized, lower-cased address or raise ValidationException"""
    try:
        result = _validate_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationException(
            "Please enter a valid email",
            details={"fields": {"email": str(e)}},
        )
    return result.normalized.lower()


def sanitize_input(value: str, max_length: int = 1000) -> str:
    """Strip markup and script vectors from free text"""
    if not value:
        return ""
    cleaned = value.strip()
    cleaned = re.sub(r"[<>]", "", cleaned)
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"on\w+=", "", cleaned, flags=re.IGNORECASE)
    return cleaned[:max_length]


def security_headers() -> Dict[str, str]:
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "1; mode=block",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    }


def production_readiness_issues() -> List[str]:
    """Configuration problems worth a warning at startup"""
    issues = []
    if len(settings.JWT_SECRET) < 32:
        issues.append("JWT_SECRET is too short (minimum 32 characters)")
    if settings.JWT_SECRET == DEV_JWT_SECRET:
        issues.append("JWT_SECRET is still the development default")
    if settings.STORE_BACKEND == "memory":
        issues.append("STORE_BACKEND is 'memory'; data and lockouts are lost on restart")
    if settings.DEBUG:
        issues.append("DEBUG is enabled")
    return issues
