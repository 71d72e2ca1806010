# =============================================================================
# tests/test_instagram.py - Instagram Integration Tests
# =============================================================================
# The Graph API is never called: InstagramGraphClient methods and the
# lib.instagram_graph OAuth helpers are patched.
#
# Run with: pytest tests/test_instagram.py -v
# =============================================================================

from unittest.mock import patch

import httpx
import pytest

from app.config import settings
from app.exceptions import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    IntegrationNotConnectedError,
    InvalidRequestError,
)
from core.services.instagram_service import InstagramService
from lib import instagram_graph
from lib.instagram_graph import GraphAPIError, InstagramGraphClient
from lib.utils import encode_state
from tests.conftest import USER_ID

ACCOUNT = {
    "instagram_business_account_id": "ig-123",
    "instagram_user_id": "ig-123",
    "instagram_username": "creator",
    "facebook_page_id": "page-1",
}


@pytest.fixture
def connected(fake_db):
    return fake_db.add("instagram_integrations", {
        "user_id": USER_ID,
        "access_token": "long-token",
        **ACCOUNT,
    })


@pytest.fixture
def instagram_configured():
    with patch.object(settings, "FACEBOOK_APP_ID", "app-id"), \
            patch.object(settings, "FACEBOOK_APP_SECRET", "app-secret"):
        yield


# =============================================================================
# OAuth
# =============================================================================

class TestOAuth:

    def test_url_requires_app_credentials(self, fake_db):
        with pytest.raises(IntegrationNotConfiguredError):
            InstagramService.get_oauth_url(USER_ID)

    def test_url(self, instagram_configured):
        url = InstagramService.get_oauth_url(USER_ID)

        assert url.startswith("https://www.facebook.com/v21.0/dialog/oauth?")
        assert "instagram_content_publish" in url

    def test_callback_stores_account(self, fake_db, instagram_configured):
        state = encode_state({"userId": USER_ID, "redirect": "https://app.test/dashboard/integrations"})

        with patch("lib.instagram_graph.exchange_code", return_value="short"), \
                patch("lib.instagram_graph.exchange_long_lived_token", return_value=("long", 5184000)) as exchange, \
                patch("lib.instagram_graph.find_business_account", return_value=dict(ACCOUNT)):
            result = InstagramService.handle_callback(USER_ID, "code", state)

        assert result == {
            "success": True,
            "redirect": "https://app.test/dashboard/integrations",
            "hasInstagramAccount": True,
        }
        assert exchange.call_args.args[0] == "short"
        row = fake_db.rows("instagram_integrations")[0]
        assert row["access_token"] == "long"
        assert row["instagram_username"] == "creator"
        assert row["expires_at"]

    def test_callback_graph_error(self, fake_db, instagram_configured):
        state = encode_state({"userId": USER_ID})

        with patch("lib.instagram_graph.exchange_code", side_effect=GraphAPIError("Invalid code", 100)):
            with pytest.raises(ExternalServiceError) as exc_info:
                InstagramService.handle_callback(USER_ID, "code", state)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"service": "Instagram", "graph_code": 100}

    def test_status(self, connected):
        assert InstagramService.get_status(USER_ID) == {
            "connected": True,
            "username": "creator",
            "hasBusinessAccount": True,
        }

    def test_status_disconnected(self, fake_db):
        assert InstagramService.get_status(USER_ID)["connected"] is False


# =============================================================================
# Publishing
# =============================================================================

class TestPublish:

    def test_body_required(self, connected):
        with pytest.raises(InvalidRequestError, match="content_body required"):
            InstagramService.publish_post(USER_ID, "", "https://cdn.test/a.jpg")

    def test_not_connected(self, fake_db):
        with pytest.raises(IntegrationNotConnectedError):
            InstagramService.publish_post(USER_ID, "Hello", "https://cdn.test/a.jpg")

    def test_account_without_business_id(self, fake_db):
        fake_db.add("instagram_integrations", {"user_id": USER_ID, "access_token": "t"})

        with pytest.raises(IntegrationNotConnectedError):
            InstagramService.publish_post(USER_ID, "Hello", "https://cdn.test/a.jpg")

    def test_image_required(self, connected):
        with pytest.raises(InvalidRequestError, match="thumbnail_url required"):
            InstagramService.publish_post(USER_ID, "Hello", "   ")

    def test_creates_and_publishes_container(self, connected):
        with patch.object(InstagramGraphClient, "create_image_container", return_value="container-1") as create, \
                patch.object(InstagramGraphClient, "publish_container", return_value="media-1") as publish:
            result = InstagramService.publish_post(
                USER_ID, "New drop!", " https://cdn.test/a.jpg ", hashtags=["spring"], cta="Shop now"
            )

        assert result["success"] is True
        assert result["mediaId"] == "media-1"
        create.assert_called_once_with("https://cdn.test/a.jpg", "New drop!\n\n#spring\n\nShop now")
        publish.assert_called_once_with("container-1")

    def test_graph_error_becomes_400(self, connected):
        with patch.object(
            InstagramGraphClient,
            "create_image_container",
            side_effect=GraphAPIError("Only photo or video can be accepted as media type.", 9004),
        ):
            with pytest.raises(ExternalServiceError) as exc_info:
                InstagramService.publish_post(USER_ID, "Hello", "https://cdn.test/a.txt")

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "INSTAGRAM_ERROR"
        assert exc_info.value.message == "Only photo or video can be accepted as media type."

    def test_network_error(self, connected):
        with patch.object(InstagramGraphClient, "create_image_container", side_effect=httpx.ConnectError("down")):
            with pytest.raises(ExternalServiceError) as exc_info:
                InstagramService.publish_post(USER_ID, "Hello", "https://cdn.test/a.jpg")

        assert exc_info.value.status_code == 502


# =============================================================================
# Engagement
# =============================================================================

MEDIA = [
    {"id": "m1", "caption": "Spring drop", "like_count": 10, "comments_count": 2,
     "permalink": "https://instagram.test/p/m1", "timestamp": "2024-01-10T10:00:00+0000"},
    {"id": "m2", "caption": None, "like_count": None, "comments_count": 3,
     "permalink": "https://instagram.test/p/m2", "timestamp": "2024-01-09T10:00:00+0000"},
]


class TestEngagement:

    def test_aggregates_and_records(self, fake_db, connected):
        with patch.object(InstagramGraphClient, "list_media", return_value=MEDIA) as list_media, \
                patch.object(InstagramGraphClient, "get_followers_count", return_value=200):
            result = InstagramService.get_engagement(USER_ID, limit=500)

        list_media.assert_called_once_with(50)
        assert [post["engagement"] for post in result["posts"]] == [12, 3]
        assert result["totalEngagement"] == 15
        assert result["followersCount"] == 200
        assert result["overview"] == {"impressions": 0, "engagement": 15, "followers": 200}

        metrics = {row["metric_type"]: row["metric_value"] for row in fake_db.rows("analytics_metrics")}
        assert metrics == {"engagement": 15, "followers": 200}

        content = fake_db.rows("analytics_content")
        assert [row["title"] for row in content] == ["Spring drop", "Instagram post"]
        assert content[0]["engagement_rate"] == 6.0

    def test_recording_failure_still_returns(self, fake_db, connected):
        fake_db.failing_tables.add("analytics_metrics")

        with patch.object(InstagramGraphClient, "list_media", return_value=MEDIA), \
                patch.object(InstagramGraphClient, "get_followers_count", return_value=0):
            result = InstagramService.get_engagement(USER_ID)

        assert result["totalEngagement"] == 15


# =============================================================================
# Graph client
# =============================================================================

class TestGraphParsing:

    def test_error_object_with_200_status(self):
        response = httpx.Response(200, json={"error": {"message": "Invalid OAuth access token", "code": 190}})

        with patch("lib.instagram_graph.httpx.post", return_value=response):
            with pytest.raises(GraphAPIError) as exc_info:
                InstagramGraphClient("t", "ig-1", "v21.0").publish_container("c1")

        assert exc_info.value.graph_code == 190
        assert exc_info.value.message == "Invalid OAuth access token"

    def test_missing_container_id(self):
        with patch("lib.instagram_graph.httpx.post", return_value=httpx.Response(200, json={})):
            with pytest.raises(GraphAPIError, match="No container ID"):
                InstagramGraphClient("t", "ig-1", "v21.0").create_image_container("u", "c")

    def test_non_json_error_status(self):
        with patch("lib.instagram_graph.httpx.get", return_value=httpx.Response(500, text="oops")):
            with pytest.raises(GraphAPIError, match="Failed to fetch Instagram media"):
                InstagramGraphClient("t", "ig-1", "v21.0").list_media()

    def test_long_lived_default_expiry(self):
        response = httpx.Response(200, json={"access_token": "long"})
        with patch("lib.instagram_graph.httpx.get", return_value=response):
            assert instagram_graph.exchange_long_lived_token("s", "a", "b", "v21.0") == (
                "long", instagram_graph.DEFAULT_LONG_LIVED_EXPIRY,
            )

    def test_no_linked_business_account(self):
        response = httpx.Response(200, json={"data": [{"id": "page-1", "name": "Page"}]})
        with patch("lib.instagram_graph.httpx.get", return_value=response):
            account = instagram_graph.find_business_account("t", "v21.0")

        assert account["instagram_business_account_id"] is None


# =============================================================================
# HTTP
# =============================================================================

class TestInstagramRoutes:

    def test_publish_not_connected_is_400(self, client):
        response = client.post("/api/v1/integrations/instagram/publish", json={
            "content_body": "Hello", "thumbnail_url": "https://cdn.test/a.jpg",
        })

        assert response.status_code == 400
        assert response.json()["code"] == "INTEGRATION_NOT_CONNECTED"

    def test_engagement_limit_validated(self, client, connected):
        response = client.get("/api/v1/integrations/instagram/engagement", params={"limit": 51})
        assert response.status_code == 422

    def test_status(self, client, connected):
        response = client.get("/api/v1/integrations/instagram/status")
        assert response.json()["username"] == "creator"
