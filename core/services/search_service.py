# =============================================================================
# core/services/search_service.py - Global Search
# =============================================================================
# One query against the file library, content items and research notes,
# merged into a single list ordered by updated_at.
#
# Results are cached per user and normalized request for SEARCH_CACHE_TTL
# seconds; writes to any searched table drop the user's entries.
# =============================================================================

import hashlib
import json
import logging
from typing import Any
from uuid import UUID

from core.models.file_library import FileStatus
from core.models.search import MAX_SEARCH_LIMIT, SearchType
from core.services import cache_service
from lib.supabase_client import SupabaseClient
from lib.utils import ilike_any, normalize_uuid, parse_timestamp

logger = logging.getLogger(__name__)


def search_cache_key(user_id, query: str, types: list[str], limit: int) -> str:
    digest = hashlib.sha256(
        json.dumps([query.lower(), sorted(types), limit]).encode("utf-8")
    ).hexdigest()[:16]
    return f"{cache_service.search_key_prefix(user_id)}{digest}"


def _sort_key(result: dict[str, Any]) -> float:
    moment = parse_timestamp(result.get("updated_at"))
    return moment.timestamp() if moment else 0.0


class SearchService:
    """Service for global search."""

    @staticmethod
    def _search_library(user_id: str, query: str, limit: int) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        q = (
            client.table("file_library")
            .select("id, title, description, file_type, tags, updated_at")
            .eq("user_id", user_id)
            .eq("status", FileStatus.ACTIVE.value)
        )
        if query:
            q = q.or_(ilike_any(["title", "description"], query))
        rows = q.order("updated_at", desc=True).limit(limit).execute().data or []

        return [
            {
                "id": row["id"],
                "type": SearchType.LIBRARY.value,
                "title": row.get("title") or "",
                "description": row.get("description"),
                "metadata": {"file_type": row.get("file_type"), "tags": row.get("tags") or []},
                "updated_at": row.get("updated_at"),
            }
            for row in rows
        ]

    @staticmethod
    def _search_content(user_id: str, query: str, limit: int) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        q = (
            client.table("content_editor")
            .select("id, title, description, status, channel, updated_at")
            .eq("user_id", user_id)
        )
        if query:
            q = q.or_(ilike_any(["title", "description", "content_body"], query))
        rows = q.order("updated_at", desc=True).limit(limit).execute().data or []

        return [
            {
                "id": row["id"],
                "type": SearchType.CONTENT.value,
                "title": row.get("title") or "",
                "description": row.get("description"),
                "metadata": {"status": row.get("status"), "channel": row.get("channel")},
                "updated_at": row.get("updated_at"),
            }
            for row in rows
        ]

    @staticmethod
    def _search_research(user_id: str, limit: int) -> list[dict[str, Any]]:
        # Research notes are optional; a missing table must not break search
        client = SupabaseClient.get_client()
        try:
            rows = (
                client.table("research")
                .select("id, title, description, updated_at")
                .eq("user_id", user_id)
                .order("updated_at", desc=True)
                .limit(limit)
                .execute()
                .data
            ) or []
        except Exception as e:
            logger.warning(f"Research search skipped: {e}")
            return []

        return [
            {
                "id": row["id"],
                "type": SearchType.RESEARCH.value,
                "title": row.get("title") or "",
                "description": row.get("description"),
                "metadata": None,
                "updated_at": row.get("updated_at"),
            }
            for row in rows
        ]

    @staticmethod
    def search(
        user_id: UUID | str,
        query: str = "",
        types: list[str] | None = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Run a global search.

        Returns:
            {"results": [...], "cached": bool}
        """
        user_id_str = normalize_uuid(user_id)
        query = (query or "").strip()
        types = [SearchType(t).value for t in (types or list(SearchType))]
        limit = max(1, min(limit, MAX_SEARCH_LIMIT))

        key = search_cache_key(user_id_str, query, types, limit)
        entry = cache_service.search_cache.get(key)
        if entry is not None:
            return {"results": entry.value, "cached": True}

        results: list[dict[str, Any]] = []
        if SearchType.LIBRARY.value in types:
            results.extend(SearchService._search_library(user_id_str, query, limit))
        if SearchType.CONTENT.value in types:
            results.extend(SearchService._search_content(user_id_str, query, limit))
        if SearchType.RESEARCH.value in types:
            results.extend(SearchService._search_research(user_id_str, limit))

        results.sort(key=_sort_key, reverse=True)
        results = results[:limit]

        cache_service.search_cache.set(key, results)
        logger.debug(f"Search for user {user_id}: {len(results)} results for {query!r}")
        return {"results": results, "cached": False}
