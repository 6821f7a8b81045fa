"""
Authentication and user management service
"""
import logging
import uuid
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..core.clock import Clock, parse_datetime, to_iso, utcnow
from ..core.config import settings
from ..core.exceptions import (
    AuthenticationException, ConflictException, InvalidTokenException,
    RateLimitException, ResourceNotFoundException, ValidationException,
)
from ..core.security import (
    generate_secure_token, hash_password, validate_email,
    validate_password_strength, verify_password,
)
from ..core.tokens import SESSION_TOKEN, decode_token, encode_token
from ..models.user import Role, SessionClaims, SubscriptionStatus, User
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore
from .rate_limiter import RateLimiter
from .settings_service import SystemSettingsService

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
INVALID_CREDENTIALS = "Invalid email or password"


def login_identifier(email: str) -> str:
    return f"login:{(email or '').strip().lower()}"


class AuthService:
    """Service for user registration, login and session tokens"""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock = utcnow,
        rate_limiter: Optional[RateLimiter] = None,
        settings_service: Optional[SystemSettingsService] = None,
    ):
        self.clock = clock
        self.users = DocumentBaseService(store, "users", clock)
        self.reset_tokens = DocumentBaseService(store, "password_reset_tokens", clock)
        self.rate_limiter = rate_limiter or RateLimiter(store, clock=clock)
        self.settings_service = settings_service or SystemSettingsService(store, clock)

    async def register(self, name: str, email: str, password: str) -> Tuple[User, str]:
        """Create a ``user``-role account and log it in"""
        fields: Dict[str, str] = {}
        password_errors: List[str] = []

        name = (name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            fields["name"] = f"Name must be at least {MIN_NAME_LENGTH} characters"

        normalized_email = None
        try:
            normalized_email = validate_email(email)
        except ValidationException as e:
            fields["email"] = e.details.get("fields", {}).get("email", e.message)

        strength = validate_password_strength(password)
        if not strength.valid:
            password_errors = strength.errors
            fields["password"] = strength.errors[0]

        if fields:
            details = {"fields": fields}
            if password_errors:
                details["password_errors"] = password_errors
            raise ValidationException("Invalid registration details", details=details)

        if await self.get_user_by_email(normalized_email):
            raise ConflictException(
                "An account with this email already exists",
                details={"fields": {"email": "already registered"}},
            )

        user = await self.create_user(name, normalized_email, password)
        logger.info(f"✅ Registered user {user.id}")
        return user, await self.issue_session_token(user)

    async def create_user(self, name: str, email: str, password: str, role: Role = Role.USER) -> User:
        user_id = str(uuid.uuid4())
        data = {
            "email": email.strip().lower(),
            "name": name.strip(),
            "password_hash": hash_password(password),
            "role": role.value,
            "subscription_status": SubscriptionStatus.FREE.value,
        }
        created = await self.users.create(data, doc_id=user_id)
        return User(**created)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """
        Check credentials under the login rate limit.

        Raises:
            RateLimitException: the address is locked out
            AuthenticationException: unknown email or wrong password (same message)
        """
        system = await self.settings_service.get()
        identifier = login_identifier(email)

        status = self.rate_limiter.check(identifier, system.max_login_attempts, settings.LOGIN_WINDOW_MINUTES)
        if not status.allowed:
            retry_after = int((status.lockout_end - self.clock()).total_seconds())
            raise RateLimitException(
                status.message,
                lockout_end=status.lockout_end,
                details={"retry_after": max(1, retry_after)},
            )

        user = await self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            attempts = self.rate_limiter.record_failed_attempt(identifier, settings.LOGIN_WINDOW_MINUTES)
            logger.info(f"Failed login attempt {attempts}/{system.max_login_attempts}")
            raise AuthenticationException(INVALID_CREDENTIALS)

        self.rate_limiter.reset(identifier)
        logger.info(f"✅ User {user.id} logged in")
        return user, await self.issue_session_token(user)

    async def issue_session_token(self, user: User) -> str:
        system = await self.settings_service.get()
        issued_at = self.clock()
        expires_at = issued_at + timedelta(days=system.auth_token_expiry_days)
        return encode_token({
            "sub": user.id,
            "email": user.email,
            "role": user.role.value,
            "typ": SESSION_TOKEN,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        })

    def decode_session_token(self, token: str) -> SessionClaims:
        claims = decode_token(token, SESSION_TOKEN, self.clock())
        try:
            return SessionClaims(**claims)
        except ValidationError:
            raise InvalidTokenException("Invalid token", details={"reason": "malformed claims"})

    async def verify(self, token: str) -> User:
        """Resolve a session token to its user or raise InvalidTokenException"""
        claims = self.decode_session_token(token)
        user = await self.get_user_by_id(claims.sub)
        if user is None:
            raise InvalidTokenException("Invalid token", details={"reason": "unknown user"})
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        normalized = (email or "").strip().lower()
        if not normalized:
            return None
        docs = await self.users.query([("email", "==", normalized)], limit=1)
        return User(**docs[0]) if docs else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        data = await self.users.find_by_id(user_id)
        return User(**data) if data else None

    async def list_users(self) -> List[User]:
        return [User(**doc) for doc in await self.users.list_all()]

    async def set_role(self, user_id: str, role: Role) -> User:
        if await self.get_user_by_id(user_id) is None:
            raise ResourceNotFoundException("User not found", details={"user_id": user_id})
        updated = await self.users.update(user_id, {"role": role.value})
        logger.info(f"Role of user {user_id} set to {role.value}")
        return User(**updated)

    async def ensure_admin(self, email: str, password: str, name: str) -> User:
        """Create the bootstrap admin, or promote the existing account"""
        existing = await self.get_user_by_email(email)
        if existing is None:
            user = await self.create_user(name, validate_email(email), password, role=Role.ADMIN)
            logger.info(f"✅ Created admin account {user.id}")
            return user
        if existing.role != Role.ADMIN:
            return await self.set_role(existing.id, Role.ADMIN)
        return existing

    # Password reset

    async def request_password_reset(self, email: str) -> Optional[str]:
        """Issue a one-time reset token. Returns None for unknown addresses."""
        user = await self.get_user_by_email(email)
        if user is None:
            return None

        system = await self.settings_service.get()
        token = generate_secure_token()
        expires_at = self.clock() + timedelta(hours=system.password_reset_expiry_hours)
        await self.reset_tokens.create(
            {"user_id": user.id, "expires_at": to_iso(expires_at), "used": False},
            doc_id=token,
        )
        logger.info(f"Password reset token issued for user {user.id}")
        return token

    async def check_reset_token(self, token: str) -> Optional[Dict]:
        if not token:
            return None
        record = await self.reset_tokens.find_by_id(token)
        if record is None or record.get("used"):
            return None
        expires_at = parse_datetime(record.get("expires_at"))
        if expires_at is None or expires_at <= self.clock():
            return None
        return record

    async def reset_password(self, token: str, new_password: str) -> User:
        strength = validate_password_strength(new_password)
        if not strength.valid:
            raise ValidationException(
                "Password does not meet requirements",
                details={"fields": {"password": strength.errors[0]}, "password_errors": strength.errors},
            )

        record = await self.check_reset_token(token)
        if record is None:
            raise ValidationException(
                "Invalid or expired reset token. Please request a new password reset.",
                details={"fields": {"token": "invalid or expired"}},
            )

        user = await self.get_user_by_id(record["user_id"])
        if user is None:
            raise ResourceNotFoundException("User not found")

        await self.users.update(user.id, {"password_hash": hash_password(new_password)})
        await self.reset_tokens.update(token, {"used": True})
        self.rate_limiter.reset(login_identifier(user.email))
        logger.info(f"Password reset completed for user {user.id}")
        return user
