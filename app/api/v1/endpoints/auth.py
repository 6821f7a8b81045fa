"""
Authentication endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ....core.config import settings
from ....core.exceptions import AuthenticationException, AuthorizationException
from ....models.user import (
    AuthResponse, ForgotPasswordRequest, ResetPasswordRequest, User,
    UserCreate, UserLogin, UserResponse,
)
from ....services.auth_service import AuthService
from ....services.book_service import BookService
from ..dependencies import get_auth_service, get_book_service

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

RESET_REQUESTED_MESSAGE = "If an account with that email exists, we've sent a password reset link."


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Authentication required")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Resolve the session token to a user (401 when invalid or expired)"""
    return await auth_service.verify(token)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise AuthorizationException("Admin access required")
    return current_user


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Create an account and return a session token"""
    user, token = await auth_service.register(user_data.name, user_data.email, user_data.password)
    return AuthResponse(token=token, user=UserResponse.from_user(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange email and password for a session token"""
    user, token = await auth_service.login(credentials.email, credentials.password)
    return AuthResponse(token=token, user=UserResponse.from_user(user))


@router.get("/verify")
async def verify(current_user: User = Depends(get_current_user)):
    """Check a session token and return its user"""
    return {"success": True, "user": UserResponse.from_user(current_user)}


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """User logout (client-side token removal)"""
    return {"success": True, "message": "Successfully logged out"}


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return UserResponse.from_user(current_user)


@router.get("/user-books")
async def get_user_books(
    current_user: User = Depends(get_current_user),
    book_service: BookService = Depends(get_book_service),
):
    """Books the current user can open, with reading progress"""
    books = await book_service.user_books(current_user.id)
    return {"success": True, "books": books}


@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Start a password reset. The response is the same whether or not the account exists."""
    token = await auth_service.request_password_reset(request.email)

    response = {"success": True, "message": RESET_REQUESTED_MESSAGE}
    if token and settings.DEBUG:
        # no mail transport in development
        response["reset_token"] = token
    return response


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Set a new password with a reset token"""
    await auth_service.reset_password(request.token, request.new_password)
    return {
        "success": True,
        "message": "Your password has been successfully reset. You can now log in with your new password.",
    }


@router.get("/verify-reset-token")
async def verify_reset_token(
    token: str = "",
    auth_service: AuthService = Depends(get_auth_service),
):
    """Tell the reset form whether a token is still usable"""
    record = await auth_service.check_reset_token(token)
    if record is None:
        return {"valid": False, "error": "Invalid or expired token"}
    return {"valid": True}
