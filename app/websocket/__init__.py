# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Provides real-time updates for a user's queue jobs, notifications and
# research jobs.
#
# Usage:
#   # Broadcast an event to all connections of a user (from FastAPI)
#   from app.websocket import websocket_manager
#
#   await websocket_manager.broadcast(user_id, {
#       "type": "job_status_changed",
#       "job_id": "..."
#   })
#
#   # Publish events from Celery workers
#   from app.websocket.broadcast import publish_job_status
#
#   publish_job_status(user_id, job_id, "published")
# =============================================================================

from app.websocket.manager import websocket_manager
from app.websocket.broadcast import (
    publish_event,
    publish_job_status,
    publish_notification,
    publish_research_job,
    WEBSOCKET_CHANNEL,
)

__all__ = [
    "websocket_manager",
    "publish_event",
    "publish_job_status",
    "publish_notification",
    "publish_research_job",
    "WEBSOCKET_CHANNEL",
]
