# =============================================================================
# core/services/instagram_service.py - Instagram Integration
# =============================================================================
# Facebook Login connect flow, publishing an image post, and pulling recent
# engagement into the analytics tables.
#
# Publishing is used both by the /integrations/instagram/publish endpoint
# and by the publish worker for queued jobs.
# =============================================================================

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

import httpx

from app.config import settings
from app.exceptions import (
    CreatorOpsException,
    ExternalServiceError,
    IntegrationNotConfiguredError,
    IntegrationNotConnectedError,
    InvalidRequestError,
)
from core.services.analytics_service import AnalyticsService
from lib import instagram_graph
from lib.instagram_graph import GraphAPIError, InstagramGraphClient
from lib.supabase_client import SupabaseClient
from lib.utils import (
    ApplicationError,
    decode_state,
    encode_state,
    normalize_uuid,
    utc_now,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

TABLE = "instagram_integrations"
CHANNEL = "instagram"

DEFAULT_ENGAGEMENT_LIMIT = 25
MAX_ENGAGEMENT_LIMIT = 50
RECORDED_POSTS = 10


def _graph_error(e: GraphAPIError) -> ExternalServiceError:
    return ExternalServiceError(
        "Instagram",
        e.message,
        status_code=400,
        details={"graph_code": e.graph_code} if e.graph_code is not None else None,
    )


class InstagramService:
    """Service for the Instagram integration."""

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    @staticmethod
    def get_oauth_url(user_id: UUID | str) -> str:
        if not settings.instagram_configured:
            raise IntegrationNotConfiguredError("Instagram")

        state = encode_state({
            "userId": normalize_uuid(user_id),
            "redirect": f"{settings.site_base_url}/dashboard/integrations",
        })
        return instagram_graph.build_auth_url(
            settings.FACEBOOK_APP_ID,
            settings.instagram_redirect_uri,
            state,
            settings.GRAPH_API_VERSION,
        )

    @staticmethod
    def handle_callback(user_id: UUID | str, code: str, state: str) -> dict[str, Any]:
        """
        Exchange the code for a long-lived token and store the account.

        Raises:
            InvalidRequestError: Missing code/state or undecodable state
            CreatorOpsException: 403 when the state belongs to another user
            ExternalServiceError: A Graph exchange failed
        """
        if not code or not state:
            raise InvalidRequestError("Missing code or state")

        try:
            parsed = decode_state(state)
        except ApplicationError:
            raise InvalidRequestError("Invalid state")

        if parsed.get("userId") != normalize_uuid(user_id):
            logger.warning(f"Instagram OAuth state user mismatch for user {user_id}")
            raise CreatorOpsException("User mismatch", code="USER_MISMATCH", status_code=403)

        if not settings.instagram_configured:
            raise IntegrationNotConfiguredError("Instagram")

        version = settings.GRAPH_API_VERSION
        try:
            short_token = instagram_graph.exchange_code(
                code,
                settings.FACEBOOK_APP_ID,
                settings.FACEBOOK_APP_SECRET,
                settings.instagram_redirect_uri,
                version,
            )
            long_token, expires_in = instagram_graph.exchange_long_lived_token(
                short_token, settings.FACEBOOK_APP_ID, settings.FACEBOOK_APP_SECRET, version
            )
            account = instagram_graph.find_business_account(long_token, version)
        except GraphAPIError as e:
            logger.error(f"Instagram OAuth failed for user {user_id}: {e.message}")
            raise _graph_error(e)
        except httpx.HTTPError as e:
            raise ExternalServiceError("Instagram", str(e))

        client = SupabaseClient.get_client()
        client.table(TABLE).upsert(
            {
                "user_id": normalize_uuid(user_id),
                "access_token": long_token,
                "refresh_token": None,
                "expires_at": (utc_now() + timedelta(seconds=expires_in)).isoformat(),
                **account,
                "scopes": ",".join(instagram_graph.SCOPES),
                "updated_at": utc_now_iso(),
            },
            on_conflict="user_id",
        ).execute()

        has_account = bool(account["instagram_business_account_id"])
        logger.info(f"Instagram connected for user {user_id} (business account: {has_account})")
        return {
            "success": True,
            "redirect": parsed.get("redirect"),
            "hasInstagramAccount": has_account,
        }

    @staticmethod
    def get_status(user_id: UUID | str) -> dict[str, Any]:
        integration = SupabaseClient.fetch_integration(TABLE, user_id)
        return {
            "connected": integration is not None,
            "username": (integration or {}).get("instagram_username"),
            "hasBusinessAccount": bool((integration or {}).get("instagram_business_account_id")),
        }

    @staticmethod
    def _client(user_id: UUID | str) -> InstagramGraphClient:
        """
        Raises:
            IntegrationNotConnectedError: No token or no business account
        """
        integration = SupabaseClient.fetch_integration(TABLE, user_id)
        if (
            not integration
            or not integration.get("access_token")
            or not integration.get("instagram_business_account_id")
        ):
            raise IntegrationNotConnectedError("Instagram")

        return InstagramGraphClient(
            integration["access_token"],
            integration["instagram_business_account_id"],
            settings.GRAPH_API_VERSION,
        )

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    @staticmethod
    def publish_post(
        user_id: UUID | str,
        content_body: str | None,
        thumbnail_url: str | None,
        hashtags: list[str] | None = None,
        cta: str | None = None,
    ) -> dict[str, Any]:
        """
        Publish an image post.

        Returns:
            {"success": True, "mediaId": ..., "message": ...}

        Raises:
            InvalidRequestError: Missing body or image URL
            IntegrationNotConnectedError: Instagram not connected
            ExternalServiceError: 400 carrying the Graph message and code
        """
        if not content_body or not isinstance(content_body, str):
            raise InvalidRequestError("content_body required")

        client = InstagramService._client(user_id)

        image_url = (thumbnail_url or "").strip()
        if not image_url:
            raise InvalidRequestError(
                "thumbnail_url required for Instagram image posts. Image must be publicly accessible."
            )

        caption = instagram_graph.build_caption(content_body, hashtags, cta)

        try:
            container_id = client.create_image_container(image_url, caption)
            media_id = client.publish_container(container_id)
        except GraphAPIError as e:
            logger.warning(f"Instagram publish failed for user {user_id}: {e.message}")
            raise _graph_error(e)
        except httpx.HTTPError as e:
            raise ExternalServiceError("Instagram", str(e))

        logger.info(f"Published Instagram media {media_id} for user {user_id}")
        return {
            "success": True,
            "mediaId": media_id,
            "message": "Published to Instagram successfully",
        }

    # -------------------------------------------------------------------------
    # Engagement
    # -------------------------------------------------------------------------

    @staticmethod
    def get_engagement(user_id: UUID | str, limit: int = DEFAULT_ENGAGEMENT_LIMIT) -> dict[str, Any]:
        """
        Recent media with engagement, recorded into the analytics tables.

        Recording is best effort: failures are logged and the fetched data
        is still returned.
        """
        limit = max(1, min(limit or DEFAULT_ENGAGEMENT_LIMIT, MAX_ENGAGEMENT_LIMIT))
        client = InstagramService._client(user_id)

        try:
            media = client.list_media(limit)
            followers = client.get_followers_count()
        except GraphAPIError as e:
            raise _graph_error(e)
        except httpx.HTTPError as e:
            raise ExternalServiceError("Instagram", str(e))

        posts = []
        for item in media:
            likes = int(item.get("like_count") or 0)
            comments = int(item.get("comments_count") or 0)
            posts.append({
                "id": item.get("id"),
                "caption": item.get("caption") or "",
                "likes": likes,
                "comments": comments,
                "engagement": likes + comments,
                "permalink": item.get("permalink"),
                "timestamp": item.get("timestamp"),
            })

        total_engagement = sum(post["engagement"] for post in posts)
        InstagramService._record(user_id, posts, total_engagement, followers)

        return {
            "posts": posts,
            "totalEngagement": total_engagement,
            "followersCount": followers,
            "overview": {
                "impressions": 0,
                "engagement": total_engagement,
                "followers": followers,
            },
        }

    @staticmethod
    def _record(user_id, posts: list[dict[str, Any]], total_engagement: int, followers: int) -> None:
        try:
            AnalyticsService.record_metrics(
                user_id,
                CHANNEL,
                {"engagement": total_engagement, "followers": followers},
                metadata={"source": "instagram_graph_api"},
            )
            AnalyticsService.record_content(user_id, CHANNEL, [
                {
                    "title": post["caption"][:200] or "Instagram post",
                    "impressions": 0,
                    "engagement": post["engagement"],
                    "engagement_rate": (post["engagement"] / followers * 100) if followers > 0 else 0,
                    "recorded_at": post["timestamp"],
                }
                for post in posts[:RECORDED_POSTS]
            ])
        except Exception as e:
            logger.warning(f"Failed to record Instagram engagement for user {user_id}: {e}")
