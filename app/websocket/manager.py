# =============================================================================
# app/websocket/manager.py - Per-User Event Stream Registry
# =============================================================================
# Keeps the open /ws/updates sockets of every signed-in user so the Redis
# relay in app.main can fan each event out to all of that user's tabs.
#
# Events arriving here were published by the API or a Celery worker through
# app.websocket.broadcast:
#   - job_status_changed    the publish worker recorded published or failed for a queue job
#   - notification_created  a new row in the user's notification center
#   - research_job_updated  a queued research job is running, completed or failed
#
# There is no replay: a tab that connects late only sees events published
# after its handshake.
# =============================================================================

import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Open dashboard sockets grouped by the Supabase user id of their token.

    One user usually has several tabs open (dashboard, queue, editor); every
    event for the user goes to all of them. A socket whose send fails is
    treated as closed and dropped.
    """

    def __init__(self):
        self.connections: Dict[str, Set[WebSocket]] = {}
        self._total_connections = 0

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """Accept an authenticated socket and start delivering the user's events to it."""
        await websocket.accept()

        self.connections.setdefault(user_id, set()).add(websocket)
        self._total_connections += 1

        logger.info(
            f"Event stream opened for user {user_id} "
            f"({len(self.connections[user_id])} tabs, {self._total_connections} total)"
        )

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        # Safe to call twice: the endpoint disconnects in finally and
        # broadcast drops sockets that fail
        tabs = self.connections.get(user_id)
        if not tabs or websocket not in tabs:
            return

        tabs.discard(websocket)
        self._total_connections -= 1
        if not tabs:
            del self.connections[user_id]

        logger.info(
            f"Event stream closed for user {user_id} "
            f"({self._total_connections} total)"
        )

    async def broadcast(self, user_id: str, event: dict) -> int:
        """
        Deliver one event to every tab the user has open.

        Args:
            user_id: Owner of the event (the user_id field of the Redis message)
            event: Event body as sent to the browser, e.g.
                {"type": "job_status_changed", "job_id": ..., "status": "failed", "error": ...}

        Returns:
            Number of tabs that received it; 0 when the user has none open
        """
        tabs = self.connections.get(user_id)
        if not tabs:
            logger.debug(f"User {user_id} has no open tabs, dropping {event.get('type')}")
            return 0

        closed: Set[WebSocket] = set()
        delivered = 0

        for websocket in list(tabs):
            try:
                await websocket.send_json(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping closed socket for user {user_id}: {e}")
                closed.add(websocket)

        for websocket in closed:
            self.disconnect(user_id, websocket)

        logger.debug(f"Delivered {event.get('type')} to {delivered} tabs of user {user_id}")
        return delivered

    def get_connection_count(self, user_id: str | None = None) -> int:
        """Open sockets for one user, or across all users when user_id is None."""
        if user_id:
            return len(self.connections.get(user_id, set()))
        return self._total_connections

    def get_active_users(self) -> list[str]:
        return list(self.connections)


# Shared by the /ws/updates endpoint and the Redis relay
websocket_manager = ConnectionManager()
