# =============================================================================
# core/services/google_service.py - Google Calendar & Gmail Integration
# =============================================================================
# OAuth connect flow plus the read-only Calendar and Gmail views.
#
# Reads degrade instead of failing: no stored integration reports
# connected=False with empty data, and a Google API error reports
# connected=True with empty data.
# =============================================================================

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

import httpx

from app.config import settings
from app.exceptions import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    InvalidRequestError,
    CreatorOpsException,
)
from lib import google_api
from lib.google_api import GoogleAPIError
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import (
    ApplicationError,
    decode_state,
    encode_state,
    normalize_uuid,
    parse_timestamp,
    utc_now,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

TABLE = "google_integrations"
PROVIDER = "google"

# Refresh tokens that expire within this window
REFRESH_MARGIN = timedelta(seconds=60)

CALENDAR_WINDOW = timedelta(days=7)
GMAIL_QUERY = "is:starred OR is:important"


def _expires_at(tokens: dict[str, Any]) -> str | None:
    expires_in = tokens.get("expires_in")
    if not expires_in:
        return None
    return (utc_now() + timedelta(seconds=int(expires_in))).isoformat()


class GoogleService:
    """Service for the Google integration."""

    @staticmethod
    def _require_configured() -> None:
        if not settings.google_configured:
            raise IntegrationNotConfiguredError("Google")

    # -------------------------------------------------------------------------
    # OAuth
    # -------------------------------------------------------------------------

    @staticmethod
    def get_oauth_url(user_id: UUID | str) -> str:
        """Consent URL; the state carries the user and where to land afterwards."""
        GoogleService._require_configured()
        state = encode_state({
            "userId": normalize_uuid(user_id),
            "redirect": f"{settings.site_base_url}/dashboard/integrations",
        })
        return google_api.build_auth_url(
            settings.GOOGLE_CLIENT_ID, settings.google_redirect_uri, state
        )

    @staticmethod
    def handle_callback(user_id: UUID | str, code: str, state: str) -> dict[str, Any]:
        """
        Finish the OAuth flow and store the tokens.

        Raises:
            InvalidRequestError: Missing code/state or undecodable state
            CreatorOpsException: 403 when the state belongs to another user
            ExternalServiceError: Google rejected the code
        """
        if not code or not state:
            raise InvalidRequestError("Missing code or state")

        try:
            parsed = decode_state(state)
        except ApplicationError:
            raise InvalidRequestError("Invalid state")

        if parsed.get("userId") != normalize_uuid(user_id):
            logger.warning(f"Google OAuth state user mismatch for user {user_id}")
            raise CreatorOpsException("User mismatch", code="USER_MISMATCH", status_code=403)

        GoogleService._require_configured()

        try:
            tokens = google_api.exchange_code(
                code,
                settings.GOOGLE_CLIENT_ID,
                settings.GOOGLE_CLIENT_SECRET,
                settings.google_redirect_uri,
            )
        except GoogleAPIError as e:
            logger.error(f"Google token exchange failed for user {user_id}: {e}")
            raise ExternalServiceError("Google", "Token exchange failed", status_code=400, details=e.details)

        client = SupabaseClient.get_client()
        client.table(TABLE).upsert(
            {
                "user_id": normalize_uuid(user_id),
                "provider": PROVIDER,
                "access_token": tokens["access_token"],
                "refresh_token": tokens.get("refresh_token"),
                "expires_at": _expires_at(tokens),
                "scopes": " ".join(google_api.SCOPES),
                "updated_at": utc_now_iso(),
            },
            on_conflict="user_id,provider",
        ).execute()

        logger.info(f"Google connected for user {user_id}")
        return {"success": True, "redirect": parsed.get("redirect")}

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    @staticmethod
    def get_status(user_id: UUID | str) -> dict[str, bool]:
        integration = SupabaseClient.fetch_integration(TABLE, user_id, PROVIDER)
        return {"connected": integration is not None}

    @staticmethod
    def get_access_token(user_id: UUID | str) -> str | None:
        """
        A usable access token, refreshing it when it is about to expire.

        Returns None when the user has no integration with a refresh token.
        If the refresh itself fails the stored token is returned as is.
        """
        integration = SupabaseClient.fetch_integration(TABLE, user_id, PROVIDER)
        if not integration or not integration.get("refresh_token"):
            return None

        expires_at = parse_timestamp(integration.get("expires_at"))
        if expires_at and expires_at > utc_now() + REFRESH_MARGIN:
            return integration["access_token"]

        if not settings.google_configured:
            return integration["access_token"]

        try:
            tokens = google_api.refresh_access_token(
                integration["refresh_token"],
                settings.GOOGLE_CLIENT_ID,
                settings.GOOGLE_CLIENT_SECRET,
            )
        except (GoogleAPIError, httpx.HTTPError) as e:
            logger.warning(f"Google token refresh failed for user {user_id}: {e}")
            return integration["access_token"]

        client = SupabaseClient.get_client()
        try:
            (
                client.table(TABLE)
                .update({
                    "access_token": tokens["access_token"],
                    "expires_at": _expires_at(tokens),
                    "updated_at": utc_now_iso(),
                })
                .eq("user_id", normalize_uuid(user_id))
                .eq("provider", PROVIDER)
                .execute()
            )
        except Exception as e:
            # Token is still usable for this call
            logger.warning(f"Failed to store refreshed Google token for user {user_id}: {e}")
        else:
            logger.info(f"Refreshed Google token for user {user_id}")
        return tokens["access_token"]

    # -------------------------------------------------------------------------
    # Calendar & Gmail
    # -------------------------------------------------------------------------

    @staticmethod
    def _widget_token(user_id: UUID | str, widget: str) -> str | None:
        """get_access_token for the dashboard widgets; a database error reads as not connected."""
        try:
            return GoogleService.get_access_token(user_id)
        except SupabaseClientError as e:
            logger.warning(f"{widget} token lookup failed for user {user_id}: {e}")
            return None

    @staticmethod
    def get_calendar_events(user_id: UUID | str, max_results: int = 10) -> dict[str, Any]:
        """Events in the next 7 days: {events, connected}."""
        access_token = GoogleService._widget_token(user_id, "Calendar")
        if not access_token:
            return {"events": [], "connected": False}

        now = utc_now()
        try:
            events = google_api.list_calendar_events(
                access_token, now, now + CALENDAR_WINDOW, max_results
            )
        except (GoogleAPIError, httpx.HTTPError) as e:
            logger.warning(f"Calendar fetch failed for user {user_id}: {e}")
            return {"events": [], "connected": True}

        return {"events": events, "connected": True}

    @staticmethod
    def get_gmail_threads(
        user_id: UUID | str,
        query: str = GMAIL_QUERY,
        list_max: int = 10,
        detail_max: int = 5,
    ) -> dict[str, Any]:
        """
        Recent matching threads with a short snippet: {threads, connected}.

        Lists up to list_max threads and reads details for the first
        detail_max; threads that can't be read are left out.
        """
        access_token = GoogleService._widget_token(user_id, "Gmail")
        if not access_token:
            return {"threads": [], "connected": False}

        try:
            thread_ids = google_api.list_gmail_threads(access_token, query, list_max)
            threads = []
            for thread_id in thread_ids[:detail_max]:
                snippet = google_api.get_thread_snippet(access_token, thread_id)
                if snippet is not None:
                    threads.append({"id": thread_id, "snippet": snippet})
        except (GoogleAPIError, httpx.HTTPError) as e:
            logger.warning(f"Gmail fetch failed for user {user_id}: {e}")
            return {"threads": [], "connected": True}

        return {"threads": threads, "connected": True}
