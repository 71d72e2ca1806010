# =============================================================================
# tests/test_websocket.py - WebSocket Manager, Endpoint and Event Tests
# =============================================================================
# Run with: pytest tests/test_websocket.py -v
# =============================================================================

import asyncio
import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from starlette.websockets import WebSocketDisconnect

from app.config import settings
from app.websocket.broadcast import (
    WEBSOCKET_CHANNEL,
    publish_event,
    publish_job_status,
)
from app.websocket.manager import ConnectionManager
from tests.conftest import USER_ID


def _socket():
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    return websocket


class TestConnectionManager:

    def test_broadcast_to_every_tab(self):
        manager = ConnectionManager()
        first, second = _socket(), _socket()

        async def scenario():
            await manager.connect(USER_ID, first)
            await manager.connect(USER_ID, second)
            return await manager.broadcast(USER_ID, {"type": "ping"})

        assert asyncio.run(scenario()) == 2
        first.send_json.assert_awaited_once_with({"type": "ping"})
        assert manager.get_connection_count(USER_ID) == 2

    def test_dead_socket_is_dropped(self):
        manager = ConnectionManager()
        alive, dead = _socket(), _socket()
        dead.send_json.side_effect = RuntimeError("closed")

        async def scenario():
            await manager.connect(USER_ID, alive)
            await manager.connect(USER_ID, dead)
            return await manager.broadcast(USER_ID, {"type": "ping"})

        assert asyncio.run(scenario()) == 1
        assert manager.get_connection_count() == 1

    def test_no_connections(self):
        assert asyncio.run(ConnectionManager().broadcast(USER_ID, {"type": "x"})) == 0

    def test_disconnect_last_socket_forgets_user(self):
        manager = ConnectionManager()
        websocket = _socket()

        asyncio.run(manager.connect(USER_ID, websocket))
        manager.disconnect(USER_ID, websocket)

        assert manager.get_active_users() == []

    def test_second_disconnect_of_same_tab_is_ignored(self):
        manager = ConnectionManager()
        dashboard_tab, queue_tab = _socket(), _socket()

        async def scenario():
            await manager.connect(USER_ID, dashboard_tab)
            await manager.connect(USER_ID, queue_tab)

        asyncio.run(scenario())
        manager.disconnect(USER_ID, queue_tab)
        manager.disconnect(USER_ID, queue_tab)

        assert manager.get_connection_count() == 1
        assert manager.get_connection_count(USER_ID) == 1
        assert manager.get_active_users() == [USER_ID]


class TestPublishEvent:

    def test_message_shape(self, redis_events):
        assert publish_job_status(USER_ID, "job-1", "failed", error="Not connected") is True

        channel, message = redis_events.publish.call_args.args
        assert channel == WEBSOCKET_CHANNEL
        assert json.loads(message) == {
            "user_id": USER_ID,
            "type": "job_status_changed",
            "job_id": "job-1",
            "status": "failed",
            "error": "Not connected",
        }

    def test_redis_outage_is_reported_not_raised(self, redis_events):
        redis_events.publish.side_effect = ConnectionError("redis down")

        assert publish_event(USER_ID, "notification_created", {}) is False


class TestUpdatesEndpoint:

    @pytest.fixture
    def raw_client(self):
        from app.main import app

        return TestClient(app)

    def test_connect_and_ping(self, raw_client):
        token = jwt.encode(
            {"sub": USER_ID, "aud": "authenticated", "exp": int(time.time()) + 60},
            settings.SUPABASE_JWT_SECRET,
            algorithm="HS256",
        )

        with raw_client.websocket_connect(f"/ws/updates?token={token}") as websocket:
            hello = websocket.receive_json()
            assert hello["type"] == "connected"
            assert hello["user_id"] == USER_ID

            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_bad_token_is_closed(self, raw_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with raw_client.websocket_connect("/ws/updates?token=garbage") as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 4001

    def test_status(self, raw_client):
        with patch("app.websocket.routes.websocket_manager", ConnectionManager()):
            assert raw_client.get("/ws/status").json() == {"total_connections": 0, "active_users": 0}
