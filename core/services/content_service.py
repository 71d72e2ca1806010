# =============================================================================
# core/services/content_service.py - Content Editor Business Logic
# =============================================================================
# CRUD over content_editor rows.
#
# Changing content_body snapshots the body being replaced into
# content_editor_versions, numbered from 1 per item.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import ResourceNotFoundError
from core.models.content import DEFAULT_CHANNEL, ContentStatus
from core.services import cache_service
from lib.supabase_client import SupabaseClient
from lib.utils import ilike_any, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "content_editor"
VERSIONS_TABLE = "content_editor_versions"


def _not_found(content_id) -> ResourceNotFoundError:
    return ResourceNotFoundError("Content", str(content_id))


class ContentService:
    """Service for content item operations, scoped by user_id."""

    @staticmethod
    def list_items(
        user_id: UUID | str,
        status: str | None = None,
        channel: str | None = None,
        assignee_id: str | None = None,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List the user's content items, most recently updated first.

        Returns:
            Tuple of (items, total count)
        """
        client = SupabaseClient.get_client()
        offset = (page - 1) * page_size

        query = (
            client.table(TABLE)
            .select("*", count="exact")
            .eq("user_id", normalize_uuid(user_id))
        )
        if status and status != "all":
            query = query.eq("status", status)
        if channel and channel != "all":
            query = query.eq("channel", channel)
        if assignee_id:
            query = query.eq("assignee_id", assignee_id)
        if search and search.strip():
            query = query.or_(ilike_any(["title", "description"], search))

        try:
            response = (
                query
                .order("updated_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list content: {e}")
            raise

        return response.data or [], response.count or 0

    @staticmethod
    def get_item(content_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        """
        Raises:
            ResourceNotFoundError: If the item doesn't exist for the user
        """
        item = SupabaseClient.fetch_owned_row(TABLE, content_id, user_id)
        if not item:
            raise _not_found(content_id)
        return item

    @staticmethod
    def create_item(user_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        row = {
            **data,
            "user_id": normalize_uuid(user_id),
            "title": data["title"].strip(),
            "status": data.get("status") or ContentStatus.DRAFT.value,
            "channel": data.get("channel") or DEFAULT_CHANNEL,
            "tags": data.get("tags") or [],
        }
        item = SupabaseClient.insert_row(TABLE, row)
        logger.info(f"Created content {item['id']} for user {user_id}")
        cache_service.invalidate_user(user_id)
        return item

    @staticmethod
    def update_item(content_id: str | UUID, user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Apply a partial update, versioning the previous body if it changes.

        Raises:
            ResourceNotFoundError: If the item doesn't exist for the user
        """
        current = ContentService.get_item(content_id, user_id)
        if not changes:
            return current

        if "content_body" in changes and changes["content_body"] != current.get("content_body"):
            ContentService._save_version(current)

        updated = SupabaseClient.update_owned_row(
            TABLE, content_id, user_id, {**changes, "updated_at": utc_now_iso()}
        )
        if not updated:
            raise _not_found(content_id)

        logger.info(f"Updated content {content_id}: {sorted(changes)}")
        cache_service.invalidate_user(user_id)
        return updated

    @staticmethod
    def _save_version(item: dict[str, Any]) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        response = (
            client.table(VERSIONS_TABLE)
            .select("version_number")
            .eq("content_editor_id", item["id"])
            .order("version_number", desc=True)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        next_version = (rows[0]["version_number"] + 1) if rows else 1

        version = SupabaseClient.insert_row(VERSIONS_TABLE, {
            "content_editor_id": item["id"],
            "user_id": item["user_id"],
            "content_body": item.get("content_body"),
            "version_number": next_version,
        })
        logger.debug(f"Saved version {next_version} of content {item['id']}")
        return version

    @staticmethod
    def list_versions(content_id: str | UUID, user_id: UUID | str) -> list[dict[str, Any]]:
        """Versions of an item, newest first."""
        ContentService.get_item(content_id, user_id)

        client = SupabaseClient.get_client()
        response = (
            client.table(VERSIONS_TABLE)
            .select("*")
            .eq("content_editor_id", normalize_uuid(content_id))
            .order("version_number", desc=True)
            .execute()
        )
        return response.data or []

    @staticmethod
    def delete_item(content_id: str | UUID, user_id: UUID | str) -> None:
        if not SupabaseClient.delete_owned_row(TABLE, content_id, user_id):
            raise _not_found(content_id)
        logger.info(f"Deleted content {content_id} for user {user_id}")
        cache_service.invalidate_user(user_id)

    @staticmethod
    def bulk_update_status(ids: list[str | UUID], status: str, user_id: UUID | str) -> int:
        """Set status on the user's items among ids. Returns the number updated."""
        if not ids:
            return 0

        client = SupabaseClient.get_client()
        response = (
            client.table(TABLE)
            .update({"status": status, "updated_at": utc_now_iso()})
            .eq("user_id", normalize_uuid(user_id))
            .in_("id", [normalize_uuid(item_id) for item_id in ids])
            .execute()
        )
        updated = len(response.data or [])
        logger.info(f"Set status {status} on {updated} content items for user {user_id}")
        cache_service.invalidate_user(user_id)
        return updated
