# =============================================================================
# app/routers/integrations.py - Google & Instagram Integration Endpoints
# =============================================================================
# OAuth connect flows, connection status, the Calendar/Gmail widgets and
# Instagram publishing and engagement.
# All endpoints require authentication.
# =============================================================================

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.auth import AuthUser, get_current_user
from core.services.google_service import GoogleService
from core.services.instagram_service import (
    DEFAULT_ENGAGEMENT_LIMIT,
    MAX_ENGAGEMENT_LIMIT,
    InstagramService,
)

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================

class OAuthCallbackRequest(BaseModel):
    code: str = ""
    state: str = ""


class InstagramPublishRequest(BaseModel):
    """
    Publish an image post.

    Example:
        {
            "content_body": "New drop this Friday",
            "thumbnail_url": "https://cdn.example.com/drop.jpg",
            "hashtags": ["launch", "#spring"],
            "cta": "Link in bio"
        }
    """
    content_body: str | None = None
    thumbnail_url: str | None = Field(default=None, description="Publicly reachable image URL")
    hashtags: list[str] | None = None
    cta: str | None = None


# =============================================================================
# Google
# =============================================================================

@router.post("/google/oauth/init")
async def google_oauth_init(user: AuthUser = Depends(get_current_user)) -> dict[str, str]:
    """Consent URL for Calendar and Gmail read access."""
    return {"authUrl": GoogleService.get_oauth_url(user.id)}


@router.post("/google/oauth/callback")
async def google_oauth_callback(
    request: OAuthCallbackRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return GoogleService.handle_callback(user.id, request.code, request.state)


@router.get("/google/status")
async def google_status(user: AuthUser = Depends(get_current_user)) -> dict[str, bool]:
    return GoogleService.get_status(user.id)


@router.get("/google/calendar")
async def google_calendar(
    user: AuthUser = Depends(get_current_user),
    max_results: Annotated[int, Query(ge=1, le=50)] = 10,
) -> dict[str, Any]:
    """Events in the next 7 days."""
    return GoogleService.get_calendar_events(user.id, max_results)


@router.get("/google/gmail")
async def google_gmail(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    """Starred or important threads with short snippets."""
    return GoogleService.get_gmail_threads(user.id)


# =============================================================================
# Instagram
# =============================================================================

@router.post("/instagram/oauth/init")
async def instagram_oauth_init(user: AuthUser = Depends(get_current_user)) -> dict[str, str]:
    return {"authUrl": InstagramService.get_oauth_url(user.id)}


@router.post("/instagram/oauth/callback")
async def instagram_oauth_callback(
    request: OAuthCallbackRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return InstagramService.handle_callback(user.id, request.code, request.state)


@router.get("/instagram/status")
async def instagram_status(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return InstagramService.get_status(user.id)


@router.post("/instagram/publish")
async def instagram_publish(
    request: InstagramPublishRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Publish an image post to the connected business account.

    Graph API errors come back as 400 with the Graph message and code.
    """
    return InstagramService.publish_post(
        user.id,
        content_body=request.content_body,
        thumbnail_url=request.thumbnail_url,
        hashtags=request.hashtags,
        cta=request.cta,
    )


@router.get("/instagram/engagement")
async def instagram_engagement(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1, le=MAX_ENGAGEMENT_LIMIT)] = DEFAULT_ENGAGEMENT_LIMIT,
) -> dict[str, Any]:
    """Recent media with likes and comments; also recorded into analytics."""
    return InstagramService.get_engagement(user.id, limit)
