# =============================================================================
# tests/test_search.py - Global Search Tests
# =============================================================================
# Run with: pytest tests/test_search.py -v
# =============================================================================

import pytest

from core.services import cache_service
from core.services.search_service import SearchService, search_cache_key
from tests.conftest import OTHER_USER_ID, USER_ID


@pytest.fixture
def searchable(fake_db):
    fake_db.seed("file_library", [
        {"id": "f1", "user_id": USER_ID, "title": "Launch banner", "description": None,
         "file_type": "png", "tags": ["launch"], "status": "active",
         "updated_at": "2024-01-05T00:00:00+00:00"},
        {"id": "f2", "user_id": USER_ID, "title": "Old launch", "status": "archived",
         "updated_at": "2024-01-06T00:00:00+00:00"},
        {"id": "f3", "user_id": OTHER_USER_ID, "title": "Launch", "status": "active",
         "updated_at": "2024-01-07T00:00:00+00:00"},
    ])
    fake_db.seed("content_editor", [
        {"id": "c1", "user_id": USER_ID, "title": "Caption", "description": "for the LAUNCH",
         "status": "draft", "channel": "instagram", "updated_at": "2024-01-08T00:00:00+00:00"},
        {"id": "c2", "user_id": USER_ID, "title": "Blog", "content_body": "launch recap",
         "status": "review", "channel": "blog", "updated_at": "2024-01-03T00:00:00+00:00"},
        {"id": "c3", "user_id": USER_ID, "title": "Unrelated", "status": "draft",
         "updated_at": "2024-01-09T00:00:00+00:00"},
    ])
    fake_db.seed("research", [
        {"id": "r1", "user_id": USER_ID, "title": "Trends", "updated_at": "2024-01-04T00:00:00+00:00"},
    ])


class TestSearch:

    def test_merges_newest_first(self, searchable):
        result = SearchService.search(USER_ID, "launch")

        assert result["cached"] is False
        assert [(r["type"], r["id"]) for r in result["results"]] == [
            ("content", "c1"),
            ("library", "f1"),
            ("research", "r1"),
            ("content", "c2"),
        ]

    def test_result_metadata(self, searchable):
        results = SearchService.search(USER_ID, "banner", types=["library"])["results"]

        assert results == [{
            "id": "f1",
            "type": "library",
            "title": "Launch banner",
            "description": None,
            "metadata": {"file_type": "png", "tags": ["launch"]},
            "updated_at": "2024-01-05T00:00:00+00:00",
        }]

    def test_types_and_limit(self, searchable):
        results = SearchService.search(USER_ID, "", types=["content"], limit=2)["results"]
        assert [r["id"] for r in results] == ["c3", "c1"]

    def test_limit_is_capped(self, searchable):
        key = search_cache_key(USER_ID, "x", ["library"], 50)

        SearchService.search(USER_ID, "x", types=["library"], limit=500)

        assert key in cache_service.search_cache

    def test_repeat_is_cached_until_invalidated(self, fake_db, searchable):
        SearchService.search(USER_ID, "launch")
        fake_db.add("content_editor", {
            "id": "c4", "user_id": USER_ID, "title": "Launch teaser",
            "updated_at": "2024-02-01T00:00:00+00:00",
        })

        cached = SearchService.search(USER_ID, "  LAUNCH ")
        assert cached["cached"] is True
        assert "c4" not in {r["id"] for r in cached["results"]}

        cache_service.invalidate_scope("search", USER_ID)
        fresh = SearchService.search(USER_ID, "launch")
        assert fresh["results"][0]["id"] == "c4"

    def test_missing_research_table_is_skipped(self, fake_db, searchable):
        fake_db.failing_tables.add("research")

        results = SearchService.search(USER_ID, "launch")["results"]

        assert "research" not in {r["type"] for r in results}

    def test_unknown_type_rejected(self, fake_db):
        with pytest.raises(ValueError):
            SearchService.search(USER_ID, "x", types=["tweets"])


class TestSearchRoute:

    def test_post(self, client, searchable):
        response = client.post("/api/v1/search", json={"query": "launch", "types": ["library"]})

        assert response.status_code == 200
        assert [r["id"] for r in response.json()["results"]] == ["f1"]

    def test_invalid_type_is_422(self, client, fake_db):
        response = client.post("/api/v1/search", json={"query": "x", "types": ["tweets"]})
        assert response.status_code == 422
