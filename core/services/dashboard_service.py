# =============================================================================
# core/services/dashboard_service.py - Dashboard Aggregation
# =============================================================================
# Builds the dashboard payload from Google, content items, the publishing
# queue, the file library and research notes, and serves it through the
# per-user TTL cache.
#
# The payload keys are camelCase; the dashboard widgets consume them as-is.
# =============================================================================

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from core.models.content import ContentStatus
from core.models.file_library import FileStatus
from core.models.publishing import QueueStatus
from core.services import cache_service
from core.services.google_service import GoogleService
from lib.supabase_client import SupabaseClient
from lib.ttl_cache import CacheEntry
from lib.utils import format_time_ago, normalize_uuid, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=7)
MAX_CALENDAR_EVENTS = 10
MAX_GMAIL_THREADS = 5
DASHBOARD_GMAIL_QUERY = "is:starred"
MAX_SCHEDULED_CONTENT = 5
MAX_QUEUED_JOBS = 5
MAX_SCHEDULED_POSTS = 8
MAX_RECENT_ASSETS = 6
MAX_RESEARCH_SUMMARIES = 5

# Placeholder relevance until research notes carry a real score
RESEARCH_SCORE = 85


def _post_time(post: dict[str, Any]) -> str:
    return post.get("scheduledTime") or post.get("dueDate") or ""


class DashboardService:
    """Service for the dashboard payload and its cache."""

    @staticmethod
    def _scheduled_posts(user_id: str) -> list[dict[str, Any]]:
        """Content due in the next week merged with future queued jobs, soonest first."""
        client = SupabaseClient.get_client()
        now = utc_now()
        now_iso = now.isoformat()

        content_rows = (
            client.table("content_editor")
            .select("id, title, due_date, channel, status")
            .eq("user_id", user_id)
            .in_("status", [ContentStatus.SCHEDULED.value, ContentStatus.REVIEW.value])
            .gte("due_date", now_iso)
            .lte("due_date", (now + UPCOMING_WINDOW).isoformat())
            .order("due_date")
            .limit(MAX_SCHEDULED_CONTENT)
            .execute()
            .data
        ) or []

        queue_rows = (
            client.table("publishing_queue_logs")
            .select("id, title, scheduled_time, platform, status")
            .eq("user_id", user_id)
            .eq("status", QueueStatus.QUEUED.value)
            .gte("scheduled_time", now_iso)
            .order("scheduled_time")
            .limit(MAX_QUEUED_JOBS)
            .execute()
            .data
        ) or []

        posts = [
            {
                "id": row["id"],
                "title": row.get("title") or "",
                "dueDate": row.get("due_date"),
                "channel": row.get("channel"),
                "status": row.get("status") or "",
            }
            for row in content_rows
        ]
        posts.extend(
            {
                "id": row["id"],
                "title": row.get("title") or "",
                "scheduledTime": row.get("scheduled_time"),
                "platform": row.get("platform"),
                "status": row.get("status") or "",
            }
            for row in queue_rows
        )
        posts.sort(key=_post_time)
        return posts[:MAX_SCHEDULED_POSTS]

    @staticmethod
    def _recent_assets(user_id: str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        rows = (
            client.table("file_library")
            .select("id, title, file_type, updated_at")
            .eq("user_id", user_id)
            .eq("status", FileStatus.ACTIVE.value)
            .order("updated_at", desc=True)
            .limit(MAX_RECENT_ASSETS)
            .execute()
            .data
        ) or []
        return [
            {
                "id": row["id"],
                "title": row.get("title") or "",
                "file_type": row.get("file_type"),
                "updated_at": row.get("updated_at") or "",
            }
            for row in rows
        ]

    @staticmethod
    def _research_summaries(user_id: str) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        rows = (
            client.table("research")
            .select("id, title, updated_at")
            .eq("user_id", user_id)
            .order("updated_at", desc=True)
            .limit(MAX_RESEARCH_SUMMARIES)
            .execute()
            .data
        ) or []
        now = utc_now()
        return [
            {
                "id": row["id"],
                "title": row.get("title") or "Untitled",
                "time": format_time_ago(row.get("updated_at") or now, now=now),
                "score": RESEARCH_SCORE,
            }
            for row in rows
        ]

    @staticmethod
    def build_payload(user_id: UUID | str) -> dict[str, Any]:
        """Fetch every dashboard widget for the user."""
        user_id_str = normalize_uuid(user_id)

        calendar = GoogleService.get_calendar_events(user_id_str, MAX_CALENDAR_EVENTS)
        gmail = GoogleService.get_gmail_threads(
            user_id_str,
            DASHBOARD_GMAIL_QUERY,
            list_max=MAX_GMAIL_THREADS,
            detail_max=MAX_GMAIL_THREADS,
        )

        try:
            scheduled_posts = DashboardService._scheduled_posts(user_id_str)
            recent_assets = DashboardService._recent_assets(user_id_str)
            research_summaries = DashboardService._research_summaries(user_id_str)
        except Exception as e:
            logger.error(f"Failed to build dashboard for user {user_id}: {e}")
            raise

        return {
            "calendarEvents": calendar["events"],
            "gmailThreads": gmail["threads"],
            "scheduledPosts": scheduled_posts,
            "recentAssets": recent_assets,
            "researchSummaries": research_summaries,
            "googleConnected": calendar["connected"] or gmail["connected"],
            "cachedAt": utc_now_iso(),
        }

    @staticmethod
    def get_dashboard(user_id: UUID | str, bypass_cache: bool = False) -> tuple[CacheEntry, bool]:
        """
        Serve the dashboard from cache, rebuilding on a miss.

        bypass_cache skips the lookup but still stores the fresh payload.

        Returns:
            Tuple of (cache entry holding the payload, whether it was a hit)
        """
        key = cache_service.dashboard_key(user_id)

        if not bypass_cache:
            entry = cache_service.dashboard_cache.get(key)
            if entry is not None:
                logger.debug(f"Dashboard cache hit for user {user_id}")
                return entry, True

        payload = DashboardService.build_payload(user_id)
        entry = cache_service.dashboard_cache.set(key, payload)
        logger.debug(f"Dashboard cache {'bypass' if bypass_cache else 'miss'} for user {user_id}")
        return entry, False
