# =============================================================================
# core/services/help_service.py - Help & Contact Requests
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import InvalidRequestError
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "help_and_about"


class HelpService:
    """Contact requests sent from the help page."""

    @staticmethod
    def list_requests(user_id: UUID | str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        return (
            client.table(TABLE)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .execute()
            .data
        ) or []

    @staticmethod
    def create_request(user_id: UUID | str, title: str | None, description: str | None = None) -> dict[str, Any]:
        if not title or not isinstance(title, str) or not title.strip():
            raise InvalidRequestError("title required")

        item = SupabaseClient.insert_row(TABLE, {
            "user_id": normalize_uuid(user_id),
            "title": title.strip(),
            "description": description.strip() if isinstance(description, str) else None,
            "status": "active",
            "updated_at": utc_now_iso(),
        })
        logger.info(f"Created help request {item['id']} for user {user_id}")
        return item
