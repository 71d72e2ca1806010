# =============================================================================
# app/routers/notifications.py - Notification & Settings Endpoints
# =============================================================================
# Two routers:
# - router:          /notifications (list, mark read, full preference set)
# - settings_router: /settings/preferences (the five Settings-page flags)
# =============================================================================

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from app.auth import AuthUser, get_current_user
from core.models.notification import (
    MarkReadRequest,
    NotificationPreferencesUpdate,
    SettingsPreferencesUpdate,
)
from core.services.notification_service import NotificationService

router = APIRouter()
settings_router = APIRouter()


# =============================================================================
# Notifications
# =============================================================================

@router.get("")
async def list_notifications(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, description="Max notifications (capped at 50)")] = 20,
    offset: Annotated[int, Query(ge=0, description="Rows to skip")] = 0,
    unread_only: Annotated[bool, Query(description="Only unread notifications")] = False,
    type: Annotated[str | None, Query(description="Notification type filter")] = None,
) -> dict[str, Any]:
    """
    Notifications newest first, with the user's total unread count.
    """
    return NotificationService.list_notifications(
        user.id, limit=limit, offset=offset, unread_only=unread_only, type=type
    )


@router.post("/mark-read")
async def mark_read(
    request: MarkReadRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Mark the listed ids, or everything with all=true, as read."""
    marked = NotificationService.mark_read(user.id, ids=request.ids, all=request.all)
    return {"success": True, "marked": marked}


@router.get("/preferences")
async def get_preferences(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"preferences": NotificationService.get_preferences(user.id)}


@router.put("/preferences")
async def update_preferences(
    request: NotificationPreferencesUpdate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Change only the flags present in the body."""
    changes = request.model_dump(exclude_none=True)
    return {"preferences": NotificationService.update_preferences(user.id, changes)}


# =============================================================================
# Settings page
# =============================================================================

@settings_router.get("/preferences")
async def get_settings_preferences(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"preferences": NotificationService.get_settings_preferences(user.id)}


@settings_router.put("/preferences")
async def update_settings_preferences(
    request: SettingsPreferencesUpdate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Save all five flags; any flag left out is saved as enabled."""
    changes = request.model_dump(exclude_none=True)
    return {"preferences": NotificationService.update_settings_preferences(user.id, changes)}
