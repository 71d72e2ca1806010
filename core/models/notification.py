# =============================================================================
# core/models/notification.py - Notification & Preference Schemas
# =============================================================================

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    NEW_CONTENT = "new_content"
    REVIEW_ACTION = "review_action"
    PUBLISH_STATUS = "publish_status"
    FAILED_PUBLISH = "failed_publish"
    SYSTEM_ALERT = "system_alert"
    COMMENT = "comment"
    MENTION = "mention"


# Every user starts with these; a stored user_preferences row overrides them
NOTIFICATION_PREFERENCE_DEFAULTS: dict[str, bool] = {
    "email_comments": True,
    "email_mentions": True,
    "email_publish_status": True,
    "in_app_comments": True,
    "in_app_mentions": True,
    "email_new_content": True,
    "email_review_actions": True,
    "email_failed_publish": True,
    "email_system_alerts": True,
    "push_enabled": False,
}

# Flags managed from the Settings page
SETTINGS_PREFERENCE_KEYS = [
    "email_comments",
    "email_mentions",
    "email_publish_status",
    "in_app_comments",
    "in_app_mentions",
]


class NotificationPreferencesUpdate(BaseModel):
    """Only the flags present in the body are changed."""
    email_comments: bool | None = None
    email_mentions: bool | None = None
    email_publish_status: bool | None = None
    in_app_comments: bool | None = None
    in_app_mentions: bool | None = None
    email_new_content: bool | None = None
    email_review_actions: bool | None = None
    email_failed_publish: bool | None = None
    email_system_alerts: bool | None = None
    push_enabled: bool | None = None


class SettingsPreferencesUpdate(BaseModel):
    """Settings-page flags; a flag left out is saved as enabled."""
    email_comments: bool | None = None
    email_mentions: bool | None = None
    email_publish_status: bool | None = None
    in_app_comments: bool | None = None
    in_app_mentions: bool | None = None


class MarkReadRequest(BaseModel):
    ids: list[UUID] | None = Field(default=None, description="Notifications to mark read")
    all: bool = Field(default=False, description="Mark every unread notification read")
