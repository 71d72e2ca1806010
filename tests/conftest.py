# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Installs the in-memory Supabase fake as the client singleton
# - Silences Redis event publishing
# - Provides an authenticated TestClient
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-0123456789")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from tests.fakes import FakeSupabase

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
USER_EMAIL = "creator@example.com"

JOB_QUEUED = "aaaaaaaa-0000-4000-8000-000000000001"
JOB_FAILED = "aaaaaaaa-0000-4000-8000-000000000002"
JOB_PUBLISHED = "aaaaaaaa-0000-4000-8000-000000000003"
JOB_OTHER = "aaaaaaaa-0000-4000-8000-000000000004"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """Fresh in-memory database installed as the Supabase singleton."""
    from lib.supabase_client import SupabaseClient

    fake = FakeSupabase()
    with patch.object(SupabaseClient, "_instance", fake):
        yield fake


@pytest.fixture(autouse=True)
def redis_events():
    """Capture Redis publishes instead of connecting to a server."""
    redis_client = MagicMock()
    with patch("app.websocket.broadcast.get_redis_client", return_value=redis_client):
        yield redis_client


@pytest.fixture(autouse=True)
def empty_caches():
    from core.services import cache_service

    for cache in cache_service.CACHE_SCOPES.values():
        cache.clear()
    yield
    for cache in cache_service.CACHE_SCOPES.values():
        cache.clear()


@pytest.fixture
def auth_user():
    from app.auth import AuthUser

    return AuthUser(id=UUID(USER_ID), email=USER_EMAIL)


@pytest.fixture
def client(fake_db, auth_user):
    """TestClient with the current user overridden (lifespan tasks not started)."""
    from fastapi.testclient import TestClient

    from app.auth import get_current_user
    from app.main import app

    app.dependency_overrides[get_current_user] = lambda: auth_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def queue_jobs(fake_db):
    """A mix of queue jobs for USER_ID plus one owned by someone else."""
    return fake_db.seed("publishing_queue_logs", [
        {
            "id": JOB_QUEUED,
            "user_id": USER_ID,
            "title": "Spring launch",
            "platform": "instagram",
            "status": "queued",
            "scheduled_time": "2030-03-01T10:00:00+00:00",
            "payload": {"content_body": "Launch day", "thumbnail_url": "https://cdn.test/a.jpg"},
        },
        {
            "id": JOB_FAILED,
            "user_id": USER_ID,
            "title": "Teaser",
            "platform": "instagram",
            "status": "failed",
            "error_logs": "Media container creation failed",
            "scheduled_time": "2030-02-01T10:00:00+00:00",
            "payload": {},
        },
        {
            "id": JOB_PUBLISHED,
            "user_id": USER_ID,
            "title": "Recap",
            "platform": "tiktok",
            "status": "published",
            "scheduled_time": "2030-01-01T10:00:00+00:00",
            "payload": {},
        },
        {
            "id": JOB_OTHER,
            "user_id": OTHER_USER_ID,
            "title": "Not yours",
            "platform": "instagram",
            "status": "failed",
            "scheduled_time": "2030-01-15T10:00:00+00:00",
            "payload": {},
        },
    ])
