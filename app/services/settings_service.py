"""
Runtime system settings, editable by admins
"""
import logging

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..models.admin import SystemSettings, SystemSettingsUpdate
from .base.document_service import DocumentBaseService
from .base.store import DocumentStore

logger = logging.getLogger(__name__)

SETTINGS_DOC_ID = "global"


def default_system_settings() -> SystemSettings:
    return SystemSettings(
        auth_token_expiry_days=settings.AUTH_TOKEN_EXPIRY_DAYS,
        book_access_token_expiry_days=settings.BOOK_ACCESS_TOKEN_EXPIRY_DAYS,
        max_login_attempts=settings.MAX_LOGIN_ATTEMPTS,
        password_reset_expiry_hours=settings.PASSWORD_RESET_EXPIRY_HOURS,
        enable_email_notifications=settings.ENABLE_EMAIL_NOTIFICATIONS,
    )


class SystemSettingsService:
    """Stored overrides on top of the environment defaults"""

    def __init__(self, store: DocumentStore, clock: Clock = utcnow):
        self.documents = DocumentBaseService(store, "system_settings", clock)

    async def get(self) -> SystemSettings:
        stored = await self.documents.find_by_id(SETTINGS_DOC_ID) or {}
        current = default_system_settings().model_dump()
        current.update({k: v for k, v in stored.items() if k in current and v is not None})
        return SystemSettings(**current)

    async def update(self, changes: SystemSettingsUpdate) -> SystemSettings:
        current = (await self.get()).model_dump()
        current.update(changes.model_dump(exclude_none=True))
        updated = SystemSettings(**current)

        await self.documents.create(updated.model_dump(), doc_id=SETTINGS_DOC_ID)
        logger.info(f"System settings updated: {changes.model_dump(exclude_none=True)}")
        return updated
