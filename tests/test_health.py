# =============================================================================
# tests/test_health.py - Health, Root and Task Status Endpoint Tests
# =============================================================================
# Run with: pytest tests/test_health.py -v
# =============================================================================

from unittest.mock import MagicMock, patch


class TestHealth:

    def test_health(self, client):
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"

    def test_ready(self, client):
        body = client.get("/api/v1/health/ready").json()

        assert body["status"] == "ready"
        assert body["checks"] == {"database": "healthy", "storage": "healthy", "redis": "healthy"}
        assert body["integrations"]["stripe"] is False

    def test_ready_degraded(self, client, fake_db):
        fake_db.failing_tables.add("publishing_queue_logs")

        body = client.get("/api/v1/health/ready").json()

        assert body["status"] == "degraded"
        assert body["checks"]["database"].startswith("unhealthy")
        assert body["checks"]["storage"] == "healthy"

    def test_redis_down(self, client, redis_events):
        redis_events.ping.side_effect = ConnectionError("refused")

        body = client.get("/api/v1/health/ready").json()

        assert body["status"] == "degraded"
        assert body["checks"]["redis"] == "unhealthy: refused"

    def test_live(self, client):
        assert client.get("/api/v1/health/live").json()["status"] == "alive"

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/v1/health"


def _async_result(status, result=None, info=None):
    async_result = MagicMock()
    async_result.status = status
    async_result.result = result
    async_result.info = info
    return async_result


class TestTaskStatus:

    def test_progress(self, client):
        result = _async_result("PROGRESS", info={"percent": 40, "message": "Publishing to Instagram..."})

        with patch("app.routers.tasks._get_result", return_value=result):
            body = client.get("/api/v1/tasks/abc").json()

        assert body["progress"] == 40
        assert body["message"] == "Publishing to Instagram..."

    def test_success(self, client):
        result = _async_result("SUCCESS", result={"success": True, "job_id": "j1"})

        with patch("app.routers.tasks._get_result", return_value=result):
            body = client.get("/api/v1/tasks/abc").json()

        assert body["progress"] == 100
        assert body["result"] == {"success": True, "job_id": "j1"}

    def test_failure(self, client):
        result = _async_result("FAILURE", result=RuntimeError("boom"))

        with patch("app.routers.tasks._get_result", return_value=result):
            body = client.get("/api/v1/tasks/abc").json()

        assert body["error"] == "boom"

    def test_cancel_pending(self, client):
        result = _async_result("PENDING")

        with patch("app.routers.tasks._get_result", return_value=result):
            body = client.delete("/api/v1/tasks/abc").json()

        assert body["cancelled"] is True
        result.revoke.assert_called_once_with(terminate=True)

    def test_cancel_finished(self, client):
        result = _async_result("SUCCESS")

        with patch("app.routers.tasks._get_result", return_value=result):
            body = client.delete("/api/v1/tasks/abc").json()

        assert body["cancelled"] is False
        result.revoke.assert_not_called()
