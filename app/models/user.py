"""
User data models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"
    PREVIEW = "preview"


class SubscriptionStatus(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class User(BaseModel):
    id: str
    email: str  # stored lower-case, unique
    name: str
    password_hash: Optional[str] = None
    role: Role = Role.USER
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserCreate(BaseModel):
    # Field rules are enforced by AuthService.register so that every
    # violation is reported together.
    name: str = ""
    email: str = ""
    password: str = ""


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """User as exposed to clients (never carries the password hash)"""
    id: str
    name: str
    email: str
    role: Role
    subscription_status: SubscriptionStatus
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            subscription_status=user.subscription_status,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserResponse


class SessionClaims(BaseModel):
    """Decoded session token"""
    sub: str
    email: str
    role: Role
    typ: str
    iat: int
    exp: int


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True


class RoleUpdate(BaseModel):
    role: Role
