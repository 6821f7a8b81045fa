"""
Admin models: runtime system settings and user listings
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from .user import Role, SubscriptionStatus


class SystemSettings(BaseModel):
    """Admin-tunable settings. Wire names follow the admin dashboard."""
    auth_token_expiry_days: int = Field(7, alias="authTokenExpiry", ge=1, le=30)
    book_access_token_expiry_days: int = Field(0, alias="bookAccessTokenExpiry", ge=0, le=365)  # 0 = never
    max_login_attempts: int = Field(5, alias="maxLoginAttempts", ge=3, le=10)
    password_reset_expiry_hours: int = Field(1, alias="passwordResetExpiry", ge=1, le=24)
    enable_email_notifications: bool = Field(True, alias="enableEmailNotifications")

    class Config:
        populate_by_name = True


class SystemSettingsUpdate(BaseModel):
    """Partial update; omitted settings keep their current value"""
    auth_token_expiry_days: Optional[int] = Field(None, alias="authTokenExpiry", ge=1, le=30)
    book_access_token_expiry_days: Optional[int] = Field(None, alias="bookAccessTokenExpiry", ge=0, le=365)
    max_login_attempts: Optional[int] = Field(None, alias="maxLoginAttempts", ge=3, le=10)
    password_reset_expiry_hours: Optional[int] = Field(None, alias="passwordResetExpiry", ge=1, le=24)
    enable_email_notifications: Optional[bool] = Field(None, alias="enableEmailNotifications")

    class Config:
        populate_by_name = True


class SettingsRequest(BaseModel):
    settings: SystemSettingsUpdate


class AdminUserSummary(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    subscription_status: SubscriptionStatus
    created_at: Optional[datetime] = None
    last_active: Optional[str] = None
    total_reading_time: int = 0
    books_read: int = 0
