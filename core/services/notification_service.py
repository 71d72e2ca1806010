# =============================================================================
# core/services/notification_service.py - Notifications & Preferences
# =============================================================================
# In-app notifications and the per-user user_preferences row.
#
# Two pages edit the same row: the notifications panel writes only the flags
# it was sent, the settings page always writes its five flags (missing
# ones as enabled).
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.websocket.broadcast import publish_notification
from core.models.notification import (
    NOTIFICATION_PREFERENCE_DEFAULTS,
    SETTINGS_PREFERENCE_KEYS,
)
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "notifications"
PREFERENCES_TABLE = "user_preferences"

MAX_LIST_LIMIT = 50


class NotificationService:
    """Service for notification and preference operations."""

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @staticmethod
    def list_notifications(
        user_id: UUID | str,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
        type: str | None = None,
    ) -> dict[str, Any]:
        """
        List notifications newest first.

        unread_count is the user's total unread, regardless of the filters.

        Returns:
            {"notifications": [...], "unread_count": n}
        """
        client = SupabaseClient.get_client()
        user_id_str = normalize_uuid(user_id)
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        offset = max(0, offset)

        query = client.table(TABLE).select("*").eq("user_id", user_id_str)
        if unread_only:
            query = query.is_("read_at", "null")
        if type:
            query = query.eq("type", type)

        try:
            response = (
                query
                .order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
            unread = (
                client.table(TABLE)
                .select("id", count="exact")
                .eq("user_id", user_id_str)
                .is_("read_at", "null")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list notifications for user {user_id}: {e}")
            raise

        return {
            "notifications": response.data or [],
            "unread_count": unread.count or 0,
        }

    @staticmethod
    def mark_read(user_id: UUID | str, ids: list[str | UUID] | None = None, all: bool = False) -> int:
        """
        Mark notifications read.

        With all=True every unread notification is marked; otherwise only
        ids. Neither is a no-op.

        Returns:
            Number of rows updated
        """
        if not all and not ids:
            return 0

        client = SupabaseClient.get_client()
        now = utc_now_iso()
        query = (
            client.table(TABLE)
            .update({"read_at": now, "updated_at": now})
            .eq("user_id", normalize_uuid(user_id))
        )
        if all:
            query = query.is_("read_at", "null")
        else:
            query = query.in_("id", [normalize_uuid(notification_id) for notification_id in ids])

        response = query.execute()
        marked = len(response.data or [])
        logger.info(f"Marked {marked} notifications read for user {user_id}")
        return marked

    @staticmethod
    def create_notification(
        user_id: UUID | str,
        type: str,
        title: str,
        body: str | None = None,
        metadata: dict[str, Any] | None = None,
        channel: str = "in_app",
    ) -> dict[str, Any]:
        """
        Store an in-app notification and push it to the user's open sockets.

        Used by workers when a publish or research job finishes.
        """
        notification = SupabaseClient.insert_row(TABLE, {
            "user_id": normalize_uuid(user_id),
            "type": type,
            "channel": channel,
            "title": title,
            "body": body,
            "metadata": metadata or {},
            "status": "delivered",
            "delivery_retries": 0,
        })
        logger.info(f"Created {type} notification {notification['id']} for user {user_id}")

        publish_notification(str(user_id), notification)
        return notification

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    @staticmethod
    def _fetch_preferences(user_id: UUID | str) -> dict[str, Any] | None:
        client = SupabaseClient.get_client()
        response = (
            client.table(PREFERENCES_TABLE)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .limit(1)
            .execute()
        )
        rows = response.data or []
        return rows[0] if rows else None

    @staticmethod
    def _save_preferences(user_id: UUID | str, values: dict[str, Any]) -> dict[str, Any]:
        """Update the user's row, inserting it when there isn't one yet."""
        client = SupabaseClient.get_client()
        user_id_str = normalize_uuid(user_id)
        payload = {**values, "user_id": user_id_str, "updated_at": utc_now_iso()}

        if NotificationService._fetch_preferences(user_id) is not None:
            response = (
                client.table(PREFERENCES_TABLE)
                .update(payload)
                .eq("user_id", user_id_str)
                .execute()
            )
            saved = (response.data or [payload])[0]
        else:
            saved = SupabaseClient.insert_row(PREFERENCES_TABLE, payload)

        logger.info(f"Saved preferences for user {user_id}: {sorted(values)}")
        return saved

    @staticmethod
    def get_preferences(user_id: UUID | str) -> dict[str, Any]:
        """Stored preferences, or the defaults when the user has none."""
        return NotificationService._fetch_preferences(user_id) or dict(NOTIFICATION_PREFERENCE_DEFAULTS)

    @staticmethod
    def update_preferences(user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """Write only the boolean flags present in changes."""
        values = {
            key: value
            for key, value in changes.items()
            if key in NOTIFICATION_PREFERENCE_DEFAULTS and isinstance(value, bool)
        }
        return NotificationService._save_preferences(user_id, values)

    @staticmethod
    def get_settings_preferences(user_id: UUID | str) -> dict[str, Any]:
        stored = NotificationService._fetch_preferences(user_id)
        if stored is not None:
            return stored
        return {key: NOTIFICATION_PREFERENCE_DEFAULTS[key] for key in SETTINGS_PREFERENCE_KEYS}

    @staticmethod
    def update_settings_preferences(user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """Write all five settings flags; a missing flag is saved as True."""
        values = {}
        for key in SETTINGS_PREFERENCE_KEYS:
            value = changes.get(key)
            values[key] = value if isinstance(value, bool) else True
        return NotificationService._save_preferences(user_id, values)
