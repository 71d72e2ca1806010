# =============================================================================
# lib/instagram_graph.py - Instagram Graph API Client
# =============================================================================
# Wraps the Facebook Login OAuth flow and the Instagram Graph endpoints used
# for publishing and engagement:
# - OAuth: code -> short-lived token -> long-lived token -> business account
# - Publishing: create an image media container, then publish it
# - Engagement: recent media with like/comment counts, follower count
#
# The Graph API reports failures as {"error": {"message", "code"}} in the
# body, sometimes with a 200 status, so every response body is checked.
# =============================================================================

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

FACEBOOK_GRAPH_HOST = "https://graph.facebook.com"
INSTAGRAM_GRAPH_HOST = "https://graph.instagram.com"
FACEBOOK_DIALOG_HOST = "https://www.facebook.com"

SCOPES = [
    "instagram_basic",
    "instagram_content_publish",
    "pages_show_list",
    "pages_read_engagement",
    "pages_manage_posts",
]

# Instagram rejects captions longer than this
MAX_CAPTION_LENGTH = 2200

# Long-lived user tokens last 60 days when Graph omits expires_in
DEFAULT_LONG_LIVED_EXPIRY = 5184000

REQUEST_TIMEOUT = 15.0


class GraphAPIError(ApplicationError):
    """The Graph API returned an error object or an unusable response."""

    def __init__(self, message: str, graph_code: int | None = None):
        super().__init__(
            message,
            code="GRAPH_API_ERROR",
            suggestion="Check the Instagram connection and that the image URL is public",
            details={"graph_code": graph_code} if graph_code is not None else None,
        )
        self.graph_code = graph_code


def build_caption(content_body: str, hashtags: list[str] | None = None, cta: str | None = None) -> str:
    """
    Assemble an Instagram caption.

    Body, hashtags and call-to-action are separated by blank lines; every
    hashtag gets exactly one leading '#'. Captions over the Instagram limit
    are cut and end with '...'.

    Example:
        build_caption("New drop!", ["#spring", "launch"], "Shop now")
        # "New drop!\\n\\n#spring #launch\\n\\nShop now"
    """
    caption = content_body.strip()
    tags = [tag.strip().lstrip("#") for tag in hashtags or [] if tag and tag.strip().lstrip("#")]
    if tags:
        caption += "\n\n" + " ".join(f"#{tag}" for tag in tags)
    if cta:
        caption += "\n\n" + cta
    if len(caption) > MAX_CAPTION_LENGTH:
        caption = caption[:MAX_CAPTION_LENGTH - 3] + "..."
    return caption


def _parse(response: httpx.Response, fallback_message: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    error = data.get("error")
    if error:
        if isinstance(error, dict):
            raise GraphAPIError(error.get("message") or fallback_message, error.get("code"))
        raise GraphAPIError(str(error))
    if response.status_code >= 400:
        raise GraphAPIError(fallback_message)
    return data


# =============================================================================
# OAuth
# =============================================================================

def build_auth_url(app_id: str, redirect_uri: str, state: str, api_version: str) -> str:
    """Facebook Login dialog URL requesting the publish and insights scopes."""
    params = {
        "client_id": app_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "scope": ",".join(SCOPES),
        "response_type": "code",
    }
    return f"{FACEBOOK_DIALOG_HOST}/{api_version}/dialog/oauth?{urlencode(params)}"


def exchange_code(code: str, app_id: str, app_secret: str, redirect_uri: str, api_version: str) -> str:
    """Exchange an authorization code for a short-lived user token."""
    response = httpx.get(
        f"{FACEBOOK_GRAPH_HOST}/{api_version}/oauth/access_token",
        params={
            "client_id": app_id,
            "client_secret": app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        },
        timeout=REQUEST_TIMEOUT,
    )
    data = _parse(response, "Token exchange failed")
    if not data.get("access_token"):
        raise GraphAPIError("Token exchange failed")
    return data["access_token"]


def exchange_long_lived_token(
    short_token: str,
    app_id: str,
    app_secret: str,
    api_version: str,
) -> tuple[str, int]:
    """
    Trade a short-lived token for a long-lived one.

    Returns:
        Tuple of (access token, lifetime in seconds)
    """
    response = httpx.get(
        f"{FACEBOOK_GRAPH_HOST}/{api_version}/oauth/access_token",
        params={
            "grant_type": "fb_exchange_token",
            "client_id": app_id,
            "client_secret": app_secret,
            "fb_exchange_token": short_token,
        },
        timeout=REQUEST_TIMEOUT,
    )
    data = _parse(response, "Long-lived token exchange failed")
    if not data.get("access_token"):
        raise GraphAPIError("Long-lived token exchange failed")
    return data["access_token"], int(data.get("expires_in") or DEFAULT_LONG_LIVED_EXPIRY)


def find_business_account(access_token: str, api_version: str) -> dict[str, str | None]:
    """
    Find the first Facebook page linked to an Instagram business account.

    Returns:
        Dict with instagram_business_account_id, instagram_user_id,
        instagram_username and facebook_page_id (all None when the user has
        no linked business account)
    """
    account: dict[str, str | None] = {
        "instagram_business_account_id": None,
        "instagram_user_id": None,
        "instagram_username": None,
        "facebook_page_id": None,
    }

    response = httpx.get(
        f"{FACEBOOK_GRAPH_HOST}/{api_version}/me/accounts",
        params={"access_token": access_token, "fields": "id,name,instagram_business_account"},
        timeout=REQUEST_TIMEOUT,
    )
    pages = _parse(response, "Failed to list Facebook pages").get("data") or []
    page = next((p for p in pages if p.get("instagram_business_account")), None)
    if page is None:
        return account

    ig_account = page["instagram_business_account"]
    account["instagram_business_account_id"] = ig_account.get("id")
    account["instagram_username"] = ig_account.get("username")
    account["facebook_page_id"] = page.get("id")

    # The page token can read the IG user; fall back to the user token
    page_token_response = httpx.get(
        f"{FACEBOOK_GRAPH_HOST}/{api_version}/{page['id']}",
        params={"fields": "access_token", "access_token": access_token},
        timeout=REQUEST_TIMEOUT,
    )
    page_token = page_token_response.json().get("access_token") or access_token

    ig_user_response = httpx.get(
        f"{FACEBOOK_GRAPH_HOST}/{api_version}/{ig_account.get('id')}",
        params={"fields": "id,username", "access_token": page_token},
        timeout=REQUEST_TIMEOUT,
    )
    ig_user = ig_user_response.json()
    account["instagram_user_id"] = ig_user.get("id") or ig_account.get("id")
    account["instagram_username"] = account["instagram_username"] or ig_user.get("username")
    return account


# =============================================================================
# Graph Client
# =============================================================================

class InstagramGraphClient:
    """
    Calls the Instagram Graph API for one business account.

    Example:
        client = InstagramGraphClient(token, ig_account_id, "v21.0")
        container_id = client.create_image_container(image_url, caption)
        media_id = client.publish_container(container_id)
    """

    def __init__(self, access_token: str, account_id: str, api_version: str):
        self.access_token = access_token
        self.account_id = account_id
        self.base_url = f"{INSTAGRAM_GRAPH_HOST}/{api_version}/{account_id}"

    def create_image_container(self, image_url: str, caption: str) -> str:
        """Create an unpublished image post. Returns the container id."""
        response = httpx.post(
            f"{self.base_url}/media",
            params={"access_token": self.access_token},
            json={"image_url": image_url, "caption": caption},
            timeout=REQUEST_TIMEOUT,
        )
        data = _parse(response, "Failed to create media container")
        if not data.get("id"):
            raise GraphAPIError("No container ID returned from Instagram")
        return data["id"]

    def publish_container(self, container_id: str) -> str:
        """Publish a media container. Returns the published media id."""
        response = httpx.post(
            f"{self.base_url}/media_publish",
            params={"access_token": self.access_token},
            json={"creation_id": container_id},
            timeout=REQUEST_TIMEOUT,
        )
        data = _parse(response, "Failed to publish to Instagram")
        return data.get("id", "")

    def list_media(self, limit: int = 25) -> list[dict[str, Any]]:
        """Recent media with like and comment counts, newest first."""
        response = httpx.get(
            f"{self.base_url}/media",
            params={
                "fields": "id,caption,media_type,media_url,permalink,timestamp,like_count,comments_count",
                "limit": limit,
                "access_token": self.access_token,
            },
            timeout=REQUEST_TIMEOUT,
        )
        return _parse(response, "Failed to fetch Instagram media").get("data") or []

    def get_followers_count(self) -> int:
        """Follower count of the account; 0 when Graph doesn't report one."""
        response = httpx.get(
            self.base_url,
            params={"fields": "followers_count", "access_token": self.access_token},
            timeout=REQUEST_TIMEOUT,
        )
        try:
            data = response.json()
        except ValueError:
            return 0
        return int(data.get("followers_count") or 0) if isinstance(data, dict) else 0
