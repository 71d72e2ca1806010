# =============================================================================
# tests/test_dashboard.py - Dashboard Aggregate & Cache Endpoint Tests
# =============================================================================
# Run with: pytest tests/test_dashboard.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from core.services import cache_service
from core.services.dashboard_service import DashboardService
from tests.conftest import OTHER_USER_ID, USER_ID


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


@pytest.fixture
def dashboard_rows(fake_db):
    fake_db.seed("content_editor", [
        {"id": "c-soon", "user_id": USER_ID, "title": "Reel", "status": "scheduled",
         "due_date": _iso(timedelta(days=2)), "channel": "instagram"},
        {"id": "c-review", "user_id": USER_ID, "title": "Blog", "status": "review",
         "due_date": _iso(timedelta(days=1)), "channel": "blog"},
        {"id": "c-draft", "user_id": USER_ID, "title": "Draft", "status": "draft",
         "due_date": _iso(timedelta(days=1))},
        {"id": "c-late", "user_id": USER_ID, "title": "Later", "status": "scheduled",
         "due_date": _iso(timedelta(days=10))},
        {"id": "c-other", "user_id": OTHER_USER_ID, "title": "Other", "status": "scheduled",
         "due_date": _iso(timedelta(days=1))},
    ])
    fake_db.seed("publishing_queue_logs", [
        {"id": "q-future", "user_id": USER_ID, "title": "Carousel", "status": "queued",
         "scheduled_time": _iso(timedelta(hours=12)), "platform": "instagram"},
        {"id": "q-past", "user_id": USER_ID, "title": "Old", "status": "queued",
         "scheduled_time": _iso(timedelta(days=-1)), "platform": "instagram"},
        {"id": "q-failed", "user_id": USER_ID, "title": "Broken", "status": "failed",
         "scheduled_time": _iso(timedelta(hours=5)), "platform": "instagram"},
    ])
    fake_db.seed("file_library", [
        {"id": f"f{i}", "user_id": USER_ID, "title": f"Asset {i}", "status": "active",
         "file_type": "image", "updated_at": f"2024-01-{10 + i:02d}T00:00:00+00:00"}
        for i in range(8)
    ] + [
        {"id": "f-archived", "user_id": USER_ID, "title": "Archived", "status": "archived",
         "updated_at": "2024-02-01T00:00:00+00:00"},
    ])
    fake_db.seed("research", [
        {"id": "r1", "user_id": USER_ID, "title": "Trends", "updated_at": _iso(timedelta(hours=-3))},
    ])


class TestBuildPayload:

    def test_without_google(self, dashboard_rows):
        payload = DashboardService.build_payload(USER_ID)

        assert payload["googleConnected"] is False
        assert payload["calendarEvents"] == []
        assert payload["gmailThreads"] == []
        assert "cachedAt" in payload

    def test_scheduled_posts_merge_content_and_queue(self, dashboard_rows):
        posts = DashboardService.build_payload(USER_ID)["scheduledPosts"]

        assert [post["id"] for post in posts] == ["q-future", "c-review", "c-soon"]
        assert posts[0]["platform"] == "instagram"
        assert "scheduledTime" in posts[0]
        assert "dueDate" in posts[1]

    def test_recent_assets_active_newest_six(self, dashboard_rows):
        assets = DashboardService.build_payload(USER_ID)["recentAssets"]

        assert len(assets) == 6
        assert assets[0]["id"] == "f7"
        assert "f-archived" not in {asset["id"] for asset in assets}

    def test_research_summaries(self, dashboard_rows):
        summaries = DashboardService.build_payload(USER_ID)["researchSummaries"]

        assert summaries == [{"id": "r1", "title": "Trends", "time": "3h ago", "score": 85}]

    def test_google_widgets_when_connected(self, dashboard_rows):
        with patch(
            "core.services.google_service.GoogleService.get_calendar_events",
            return_value={"events": [{"id": "e1"}], "connected": True},
        ) as calendar, patch(
            "core.services.google_service.GoogleService.get_gmail_threads",
            return_value={"threads": [{"id": "t1", "snippet": "hi"}], "connected": True},
        ) as gmail:
            payload = DashboardService.build_payload(USER_ID)

        assert payload["googleConnected"] is True
        assert payload["calendarEvents"] == [{"id": "e1"}]
        calendar.assert_called_once_with(USER_ID, 10)
        gmail.assert_called_once_with(USER_ID, "is:starred", list_max=5, detail_max=5)

    def test_google_integration_lookup_failure(self, client, fake_db, dashboard_rows):
        fake_db.failing_tables.add("google_integrations")

        response = client.get("/api/v1/dashboard")

        assert response.status_code == 200
        assert response.json()["googleConnected"] is False
        assert response.json()["calendarEvents"] == []


class TestGetDashboard:

    def test_miss_then_hit(self, dashboard_rows):
        with patch.object(DashboardService, "build_payload", wraps=DashboardService.build_payload) as build:
            first, hit1 = DashboardService.get_dashboard(USER_ID)
            second, hit2 = DashboardService.get_dashboard(USER_ID)

        assert (hit1, hit2) == (False, True)
        assert second is first
        assert build.call_count == 1

    def test_bypass_rebuilds_and_stores(self, dashboard_rows):
        first, _ = DashboardService.get_dashboard(USER_ID)
        second, hit = DashboardService.get_dashboard(USER_ID, bypass_cache=True)

        assert hit is False
        assert second is not first
        assert cache_service.dashboard_cache.get(cache_service.dashboard_key(USER_ID)) is second


class TestDashboardRoutes:

    def test_miss_headers(self, client, dashboard_rows):
        response = client.get("/api/v1/dashboard")

        assert response.status_code == 200
        assert response.headers["X-Cache-Status"] == "MISS"
        assert response.headers["Cache-Control"] == "public, max-age=60, stale-while-revalidate=120"
        assert "X-Request-Id" in response.headers
        assert "X-Response-Time-Ms" in response.headers
        assert "X-Cache-Hit-At" not in response.headers
        assert set(response.json()) == {
            "calendarEvents", "gmailThreads", "scheduledPosts", "recentAssets",
            "researchSummaries", "googleConnected", "cachedAt",
        }

    def test_hit_headers(self, client, dashboard_rows):
        first = client.get("/api/v1/dashboard").json()
        response = client.get("/api/v1/dashboard")

        assert response.headers["X-Cache-Status"] == "HIT"
        assert response.headers["X-Cache-Hit-At"] == first["cachedAt"]
        assert "X-Cache-Expires-At" in response.headers
        assert response.json() == first

    def test_bypass_header(self, client, dashboard_rows):
        client.get("/api/v1/dashboard")
        response = client.get("/api/v1/dashboard", headers={"x-cache-bypass": "true"})

        assert response.headers["X-Cache-Status"] == "MISS"

    def test_invalidate_then_miss(self, client, dashboard_rows):
        client.get("/api/v1/dashboard")

        response = client.post("/api/v1/cache/invalidate", json={"scope": "dashboard"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True, "scope": "dashboard", "user_id": USER_ID, "invalidated": 1,
        }
        assert client.get("/api/v1/dashboard").headers["X-Cache-Status"] == "MISS"

    def test_invalidate_defaults_to_dashboard(self, client, fake_db):
        response = client.post("/api/v1/cache/invalidate", json={})

        assert response.json()["scope"] == "dashboard"
        assert response.json()["invalidated"] == 0

    def test_unknown_scope(self, client, fake_db):
        response = client.post("/api/v1/cache/invalidate", json={"scope": "everything"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "UNKNOWN_CACHE_SCOPE"
        assert body["details"]["valid_scopes"] == ["dashboard", "search"]
