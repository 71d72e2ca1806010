# =============================================================================
# tests/test_publishing_queue.py - Publishing Queue Tests
# =============================================================================
# Service transitions, HTTP endpoints and the publish worker task.
#
# Run with: pytest tests/test_publishing_queue.py -v
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from app.exceptions import (
    InvalidRequestError,
    JobNotCancellableError,
    JobNotFoundError,
    JobNotPublishableError,
    JobNotRetriableError,
)
from core.services import cache_service
from core.services.publishing_queue_service import PublishingQueueService
from tests.conftest import (
    JOB_FAILED,
    JOB_OTHER,
    JOB_PUBLISHED,
    JOB_QUEUED,
    USER_ID,
)


def _job(fake_db, job_id):
    return next(row for row in fake_db.rows("publishing_queue_logs") if row["id"] == job_id)


# =============================================================================
# Service
# =============================================================================

class TestListJobs:

    def test_lists_only_own_jobs_latest_first(self, queue_jobs):
        jobs, total = PublishingQueueService.list_jobs(USER_ID)

        assert total == 3
        assert [job["id"] for job in jobs] == [JOB_QUEUED, JOB_FAILED, JOB_PUBLISHED]

    def test_status_filter_and_all(self, queue_jobs):
        jobs, total = PublishingQueueService.list_jobs(USER_ID, status="failed")
        assert [job["id"] for job in jobs] == [JOB_FAILED]

        _, total = PublishingQueueService.list_jobs(USER_ID, status="all", platform="all")
        assert total == 3

    def test_date_range_includes_whole_end_day(self, queue_jobs):
        jobs, _ = PublishingQueueService.list_jobs(
            USER_ID, date_from="2030-02-01", date_to="2030-03-01"
        )
        assert {job["id"] for job in jobs} == {JOB_QUEUED, JOB_FAILED}

    def test_pagination(self, queue_jobs):
        jobs, total = PublishingQueueService.list_jobs(USER_ID, page=2, page_size=2)
        assert total == 3
        assert [job["id"] for job in jobs] == [JOB_PUBLISHED]


class TestScheduleJob:

    def test_schedules_queued_job_with_default_platform(self, fake_db):
        job = PublishingQueueService.schedule_job(USER_ID, "  Launch  ", payload={"content_body": "x"})

        assert job["status"] == "queued"
        assert job["title"] == "Launch"
        assert job["platform"] == "instagram"
        assert job["payload"] == {"content_body": "x"}

    @pytest.mark.parametrize("title", [None, "", "   "])
    def test_title_required(self, fake_db, title):
        with pytest.raises(InvalidRequestError, match="title required"):
            PublishingQueueService.schedule_job(USER_ID, title)

    def test_invalidates_dashboard_cache(self, fake_db):
        key = cache_service.dashboard_key(USER_ID)
        cache_service.dashboard_cache.set(key, {})

        PublishingQueueService.schedule_job(USER_ID, "Launch")

        assert key not in cache_service.dashboard_cache


class TestTransitions:

    def test_retry_failed_clears_error(self, fake_db, queue_jobs):
        job = PublishingQueueService.retry_job(JOB_FAILED, USER_ID)

        assert job["status"] == "queued"
        assert job["error_logs"] is None

    def test_retry_queued_is_rejected(self, queue_jobs):
        with pytest.raises(JobNotRetriableError) as exc_info:
            PublishingQueueService.retry_job(JOB_QUEUED, USER_ID)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["status"] == "queued"
        assert exc_info.value.details["allowed_statuses"] == ["cancelled", "failed"]

    def test_foreign_job_is_not_found(self, queue_jobs):
        with pytest.raises(JobNotFoundError):
            PublishingQueueService.retry_job(JOB_OTHER, USER_ID)

    def test_bulk_retry_skips_foreign_and_ineligible(self, fake_db, queue_jobs):
        retried = PublishingQueueService.bulk_retry(
            [JOB_FAILED, JOB_QUEUED, JOB_OTHER, "missing"], USER_ID
        )

        assert retried == 1
        assert _job(fake_db, JOB_FAILED)["status"] == "queued"
        assert _job(fake_db, JOB_OTHER)["status"] == "failed"

    def test_bulk_retry_requires_ids(self, fake_db):
        with pytest.raises(InvalidRequestError):
            PublishingQueueService.bulk_retry([], USER_ID)

    def test_bulk_retry_drops_malformed_ids(self, fake_db, queue_jobs):
        assert PublishingQueueService.bulk_retry(["not-a-uuid", "42"], USER_ID) == 0
        assert fake_db.calls == []

        assert PublishingQueueService.bulk_retry([JOB_FAILED.upper(), "not-a-uuid"], USER_ID) == 1
        assert _job(fake_db, JOB_FAILED)["status"] == "queued"

    def test_manual_publish_returns_previous_status(self, fake_db, queue_jobs):
        job, previous = PublishingQueueService.start_manual_publish(JOB_FAILED, USER_ID)

        assert job["status"] == "processing"
        assert previous == "failed"

    def test_manual_publish_rejects_published(self, queue_jobs):
        with pytest.raises(JobNotPublishableError):
            PublishingQueueService.start_manual_publish(JOB_PUBLISHED, USER_ID)

    def test_restore_status_only_from_processing(self, fake_db, queue_jobs):
        PublishingQueueService.start_manual_publish(JOB_QUEUED, USER_ID)
        PublishingQueueService.restore_status(JOB_QUEUED, USER_ID, "queued")
        assert _job(fake_db, JOB_QUEUED)["status"] == "queued"

    def test_cancel_only_from_queued(self, fake_db, queue_jobs):
        job = PublishingQueueService.cancel_job(JOB_QUEUED, USER_ID)
        assert job["status"] == "cancelled"

        with pytest.raises(JobNotCancellableError):
            PublishingQueueService.cancel_job(JOB_FAILED, USER_ID)

    def test_finish_processing_ignores_moved_job(self, fake_db, queue_jobs):
        job = _job(fake_db, JOB_QUEUED)
        assert PublishingQueueService.finish_processing(job, succeeded=True) is None
        assert _job(fake_db, JOB_QUEUED)["status"] == "queued"

    def test_finish_processing_records_failure(self, fake_db, queue_jobs):
        job, _ = PublishingQueueService.start_manual_publish(JOB_QUEUED, USER_ID)

        updated = PublishingQueueService.finish_processing(job, succeeded=False, error="boom")

        assert updated["status"] == "failed"
        assert updated["error_logs"] == "boom"


# =============================================================================
# HTTP
# =============================================================================

class TestQueueRoutes:

    def test_list(self, client, queue_jobs):
        response = client.get("/api/v1/publishing-queue", params={"status": "queued"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["jobs"][0]["id"] == JOB_QUEUED
        assert body["page_size"] == 20

    def test_schedule(self, client):
        response = client.post("/api/v1/publishing-queue/schedule", json={
            "title": "Launch",
            "scheduled_time": "2030-03-01T15:00:00Z",
            "payload": {"content_body": "New drop!"},
        })

        assert response.status_code == 200
        assert response.json()["job"]["status"] == "queued"

    def test_schedule_without_title_is_400(self, client):
        response = client.post("/api/v1/publishing-queue/schedule", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_get_foreign_job_is_404(self, client, queue_jobs):
        response = client.get(f"/api/v1/publishing-queue/{JOB_OTHER}")

        assert response.status_code == 404
        assert response.json()["code"] == "JOB_NOT_FOUND"

    def test_retry_not_retriable_is_400(self, client, queue_jobs):
        response = client.post(f"/api/v1/publishing-queue/{JOB_QUEUED}/retry")

        assert response.status_code == 400
        assert response.json()["code"] == "JOB_NOT_RETRIABLE"

    def test_bulk_retry(self, client, queue_jobs):
        response = client.post(
            "/api/v1/publishing-queue/bulk-retry",
            json={"job_ids": [JOB_FAILED, JOB_OTHER]},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "retried": 1}

    def test_bulk_retry_with_malformed_id(self, client, fake_db, queue_jobs):
        response = client.post(
            "/api/v1/publishing-queue/bulk-retry",
            json={"job_ids": [JOB_FAILED, "not-a-uuid", JOB_OTHER]},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "retried": 1}
        assert _job(fake_db, JOB_FAILED)["status"] == "queued"

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/v1/publishing-queue/not-a-uuid"),
        ("post", "/api/v1/publishing-queue/not-a-uuid/retry"),
        ("post", "/api/v1/publishing-queue/123/publish"),
        ("post", "/api/v1/publishing-queue/not-a-uuid/cancel"),
    ])
    def test_malformed_job_id_is_422(self, client, fake_db, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert fake_db.calls == []

    def test_publish_enqueues_task(self, client, fake_db, queue_jobs):
        task = MagicMock()
        task.delay.return_value = MagicMock(id="task-123")

        with patch("workers.tasks.publish_queue_job", task):
            response = client.post(f"/api/v1/publishing-queue/{JOB_QUEUED}/publish")

        assert response.status_code == 200
        assert response.json()["task_id"] == "task-123"
        assert response.json()["status"] == "processing"
        task.delay.assert_called_once_with(JOB_QUEUED)
        assert _job(fake_db, JOB_QUEUED)["status"] == "processing"

    def test_publish_restores_status_when_queue_down(self, client, fake_db, queue_jobs):
        task = MagicMock()
        task.delay.side_effect = ConnectionError("redis down")

        with patch("workers.tasks.publish_queue_job", task):
            response = client.post(f"/api/v1/publishing-queue/{JOB_FAILED}/publish")

        assert response.status_code == 503
        assert response.json()["code"] == "TASK_QUEUE_UNAVAILABLE"
        assert _job(fake_db, JOB_FAILED)["status"] == "failed"

    def test_cancel(self, client, queue_jobs):
        response = client.post(f"/api/v1/publishing-queue/{JOB_QUEUED}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"


# =============================================================================
# Worker
# =============================================================================

class TestPublishTask:

    @pytest.fixture
    def processing_job(self, fake_db, queue_jobs):
        PublishingQueueService.start_manual_publish(JOB_QUEUED, USER_ID)
        return _job(fake_db, JOB_QUEUED)

    def test_instagram_success(self, fake_db, processing_job, redis_events):
        from workers.tasks import publish_queue_job

        with patch(
            "core.services.instagram_service.InstagramService.publish_post",
            return_value={"success": True, "mediaId": "m1", "message": "Published to Instagram"},
        ) as publish:
            result = publish_queue_job(JOB_QUEUED)

        assert result["success"] is True
        assert result["status"] == "published"
        publish.assert_called_once_with(
            USER_ID,
            content_body="Launch day",
            thumbnail_url="https://cdn.test/a.jpg",
            hashtags=None,
            cta=None,
        )
        assert _job(fake_db, JOB_QUEUED)["status"] == "published"

        notifications = fake_db.rows("notifications")
        assert len(notifications) == 1
        assert notifications[0]["type"] == "publish_status"

        channels = [call.args[0] for call in redis_events.publish.call_args_list]
        assert channels and all(channel == "creatorops:websocket:events" for channel in channels)

    def test_graph_failure_marks_failed(self, fake_db, processing_job):
        from app.exceptions import ExternalServiceError
        from workers.tasks import publish_queue_job

        with patch(
            "core.services.instagram_service.InstagramService.publish_post",
            side_effect=ExternalServiceError("Instagram", "Invalid image", status_code=400),
        ):
            result = publish_queue_job(JOB_QUEUED)

        assert result["success"] is False
        job = _job(fake_db, JOB_QUEUED)
        assert job["status"] == "failed"
        assert job["error_logs"] == "Invalid image"
        assert fake_db.rows("notifications")[0]["type"] == "failed_publish"

    def test_unsupported_platform(self, fake_db, queue_jobs):
        from workers.tasks import publish_queue_job

        fake_db.seed("publishing_queue_logs", [{
            "id": "job-tiktok",
            "user_id": USER_ID,
            "title": "Dance",
            "platform": "tiktok",
            "status": "processing",
            "payload": {},
        }])

        result = publish_queue_job("job-tiktok")

        assert result["error"] == "Publishing to tiktok is not supported"
        assert _job(fake_db, "job-tiktok")["status"] == "failed"

    def test_skips_job_not_processing(self, fake_db, queue_jobs):
        from workers.tasks import publish_queue_job

        with patch("core.services.instagram_service.InstagramService.publish_post") as publish:
            result = publish_queue_job(JOB_FAILED)

        assert result["skipped"] is True
        publish.assert_not_called()
        assert _job(fake_db, JOB_FAILED)["status"] == "failed"

    def test_missing_job(self, fake_db):
        from workers.tasks import publish_queue_job

        assert publish_queue_job("nope") == {"success": False, "job_id": "nope", "error": "Job not found"}

    def test_load_failure_is_returned(self, fake_db):
        from workers.tasks import publish_queue_job

        fake_db.failing_tables.add("publishing_queue_logs")

        result = publish_queue_job(JOB_QUEUED)

        assert result == {"success": False, "job_id": JOB_QUEUED, "error": "publishing_queue_logs unavailable"}

    def test_outcome_write_failure_is_returned(self, fake_db, processing_job):
        from lib.supabase_client import SupabaseClientError
        from workers.tasks import publish_queue_job

        with patch(
            "core.services.instagram_service.InstagramService.publish_post",
            return_value={"success": True, "mediaId": "m1", "message": "Published to Instagram"},
        ), patch.object(
            PublishingQueueService,
            "finish_processing",
            side_effect=SupabaseClientError("connection reset"),
        ):
            result = publish_queue_job(JOB_QUEUED)

        assert result["success"] is False
        assert result["job_id"] == JOB_QUEUED
        assert "connection reset" in result["error"]
        assert fake_db.rows("notifications") == []
