# =============================================================================
# core/models/publishing.py - Publishing Queue Schemas
# =============================================================================
# A queue job is one row in publishing_queue_logs: a scheduled or immediate
# publish action for a single post on a single platform.
#
# Status flow:
#   queued -> processing -> published | failed
#   queued -> cancelled
#   failed | cancelled -> queued          (retry / bulk retry)
#   failed -> processing                  (manual publish)
#
# Nothing moves a job from queued to processing on its own; a user has to
# trigger a manual publish.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class QueueStatus(str, Enum):
    """Lifecycle states of a queue job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Statuses a job may be in for each user action
RETRIABLE_STATUSES = frozenset({QueueStatus.FAILED, QueueStatus.CANCELLED})
PUBLISHABLE_STATUSES = frozenset({QueueStatus.QUEUED, QueueStatus.FAILED})
CANCELLABLE_STATUSES = frozenset({QueueStatus.QUEUED})

DEFAULT_PLATFORM = "instagram"


def status_values(statuses: frozenset[QueueStatus]) -> list[str]:
    """Sorted plain-string values, for queries and error details."""
    return sorted(status.value for status in statuses)


class QueueJob(BaseModel):
    """
    A publishing queue job as returned to clients.

    Example:
        {
            "id": "550e8400-e29b-41d4-a716-446655440000",
            "title": "Spring launch carousel",
            "platform": "instagram",
            "status": "failed",
            "error_logs": "Media container creation failed",
            "payload": {"content_body": "...", "thumbnail_url": "https://..."}
        }
    """

    id: str
    user_id: str
    title: str
    description: str | None = None
    platform: str = DEFAULT_PLATFORM
    scheduled_time: datetime | None = None

    # Free-form publish data (content_body, thumbnail_url, hashtags, cta)
    payload: dict[str, Any] = Field(default_factory=dict)

    # Last failure message; cleared on retry
    error_logs: str | None = None

    status: QueueStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class QueueJobList(BaseModel):
    """Paginated list of queue jobs."""
    jobs: list[QueueJob]
    total: int
    page: int
    page_size: int


class ScheduleJobRequest(BaseModel):
    """
    Request to add a job to the queue.

    Example:
        {
            "title": "Spring launch carousel",
            "platform": "instagram",
            "scheduled_time": "2024-03-01T15:00:00Z",
            "payload": {"content_body": "New drop!", "thumbnail_url": "https://..."}
        }
    """
    title: str | None = Field(default=None, description="Job title (required)")
    description: str | None = None
    platform: str | None = Field(default=None, description="Target platform (default: instagram)")
    scheduled_time: datetime | None = None
    payload: dict[str, Any] | None = None


class ScheduleJobResponse(BaseModel):
    success: bool = True
    job: QueueJob


class BulkRetryRequest(BaseModel):
    job_ids: list[str] = Field(default_factory=list, description="Jobs to retry")


class BulkRetryResponse(BaseModel):
    success: bool = True
    retried: int


class JobActionResponse(BaseModel):
    success: bool = True
    job_id: str
    status: QueueStatus
    task_id: str | None = None
