# =============================================================================
# app/websocket/broadcast.py - Cross-Process Broadcasting
# =============================================================================
# Provides utilities for Celery workers (and API services) to publish events
# that get broadcast to a user's WebSocket clients.
#
# Uses Redis pub/sub for cross-process communication:
# - Publishers call publish_event() to send events
# - FastAPI subscribes and broadcasts to WebSocket clients
#
# Events:
#   - job_status_changed: A publishing queue job changed status
#   - notification_created: A new in-app notification was stored
#   - research_job_updated: A queued research job changed status
# =============================================================================

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

# Redis channel for WebSocket events
WEBSOCKET_CHANNEL = "creatorops:websocket:events"


def get_redis_client():
    """Get a Redis client for pub/sub operations."""
    import redis
    from app.config import settings
    return redis.from_url(settings.REDIS_URL)


def publish_event(user_id: str, event_type: str, data: dict[str, Any]) -> bool:
    """
    Publish an event that will be broadcast to the user's WebSocket clients.

    Delivery is best effort: a Redis outage is logged and reported through
    the return value, never raised, because the database write the event
    describes has already happened.

    Args:
        user_id: The user to broadcast to
        event_type: Event type (job_status_changed, notification_created, ...)
        data: Event data to include

    Returns:
        bool: True if published successfully
    """
    try:
        client = get_redis_client()

        message = json.dumps({
            "user_id": str(user_id),
            "type": event_type,
            **data
        }, default=str)

        # Publish to Redis channel
        client.publish(WEBSOCKET_CHANNEL, message)

        logger.debug(f"Published {event_type} event for user {user_id}")
        return True

    except Exception as e:
        logger.error(f"Failed to publish event: {e}")
        return False


def publish_job_status(user_id: str, job_id: str, status: str, error: str | None = None) -> bool:
    """Publish a job_status_changed event for a publishing queue job."""
    data: dict[str, Any] = {"job_id": job_id, "status": status}
    if error:
        data["error"] = error
    return publish_event(user_id, "job_status_changed", data)


def publish_notification(user_id: str, notification: dict[str, Any]) -> bool:
    """Publish a notification_created event carrying the stored row."""
    return publish_event(user_id, "notification_created", {"notification": notification})


def publish_research_job(user_id: str, job_id: str, status: str) -> bool:
    """Publish a research_job_updated event."""
    return publish_event(user_id, "research_job_updated", {"job_id": job_id, "status": status})
