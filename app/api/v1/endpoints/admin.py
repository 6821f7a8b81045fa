"""
Admin endpoints: system settings, users and purchase grants
"""
import logging
from fastapi import APIRouter, Depends

from ....core.exceptions import ResourceNotFoundException
from ....models.admin import AdminUserSummary, SettingsRequest
from ....models.book import PurchaseCreate
from ....models.user import RoleUpdate, User, UserResponse
from ....services.analytics_service import AnalyticsService
from ....services.auth_service import AuthService
from ....services.book_service import BookService
from ....services.settings_service import SystemSettingsService
from ..dependencies import (
    get_analytics_service, get_auth_service, get_book_service, get_settings_service,
)
from .auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings")
async def get_settings(
    admin: User = Depends(require_admin),
    settings_service: SystemSettingsService = Depends(get_settings_service),
):
    current = await settings_service.get()
    return {"settings": current.model_dump(by_alias=True)}


@router.post("/settings")
async def update_settings(
    request: SettingsRequest,
    admin: User = Depends(require_admin),
    settings_service: SystemSettingsService = Depends(get_settings_service),
):
    """Change token lifetimes, login attempts and reset expiry"""
    updated = await settings_service.update(request.settings)
    logger.info(f"Settings changed by admin {admin.id}")
    return {
        "success": True,
        "settings": updated.model_dump(by_alias=True),
        "message": "Settings updated successfully",
    }


@router.get("/dashboard")
async def get_dashboard(
    admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    """Platform stats and the newest accounts"""
    return await analytics_service.dashboard()


@router.get("/users")
async def list_users(
    admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    summaries = await analytics_service.list_user_summaries()
    return {"users": [AdminUserSummary(**s) for s in summaries]}


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    request: RoleUpdate,
    admin: User = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
):
    user = await auth_service.set_role(user_id, request.role)
    return UserResponse.from_user(user)


@router.post("/purchases", status_code=201)
async def grant_purchase(
    request: PurchaseCreate,
    admin: User = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
    book_service: BookService = Depends(get_book_service),
):
    """Record a completed checkout or a free grant for a user"""
    if await auth_service.get_user_by_id(request.user_id) is None:
        raise ResourceNotFoundException("User not found", details={"user_id": request.user_id})
    purchase = await book_service.grant_access(request)
    return {"success": True, "purchase": purchase}
