# =============================================================================
# core/models/content.py - Content Editor Schemas
# =============================================================================
# Content items are the drafts a creator writes before they are scheduled.
# Editing the body of an item snapshots the previous body as a version.
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class ContentStatus(str, Enum):
    """
    Editorial states of a content item.

    Flow: draft -> review -> scheduled -> published
    """
    DRAFT = "draft"
    REVIEW = "review"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"


DEFAULT_CHANNEL = "instagram"


class ContentCreate(BaseModel):
    """
    Schema for creating a content item.

    Example:
        {"title": "Behind the scenes reel", "channel": "instagram", "due_date": "2024-03-01"}
    """
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    status: ContentStatus = ContentStatus.DRAFT
    content_body: str | None = None
    channel: str = DEFAULT_CHANNEL
    assignee_id: str | None = None
    due_date: datetime | None = None
    tags: list[str] = Field(default_factory=list)


class ContentUpdate(BaseModel):
    """Partial update; only fields present in the request body are written."""
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: ContentStatus | None = None
    content_body: str | None = None
    channel: str | None = None
    assignee_id: str | None = None
    due_date: datetime | None = None
    tags: list[str] | None = None


class BulkStatusRequest(BaseModel):
    ids: list[UUID] = Field(default_factory=list)
    status: ContentStatus
