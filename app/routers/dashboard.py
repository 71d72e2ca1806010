# =============================================================================
# app/routers/dashboard.py - Dashboard & Cache Endpoints
# =============================================================================
# GET /dashboard serves the aggregated dashboard from the in-memory cache.
# POST /cache/invalidate drops the caller's cached responses for one scope.
#
# Response headers on GET /dashboard:
#   Cache-Control       public, max-age=..., stale-while-revalidate=...
#   X-Cache-Status      HIT | MISS
#   X-Cache-Hit-At      when the served payload was built (HIT only)
#   X-Cache-Expires-At  when the served payload expires (HIT only)
#   X-Request-Id        random id for log correlation
#   X-Response-Time-Ms  time spent building the response
# =============================================================================

import logging
import time
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, Response
from pydantic import BaseModel

from app.auth import AuthUser, get_current_user
from app.config import settings
from app.exceptions import UnknownCacheScopeError
from core.services import cache_service
from core.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class InvalidateCacheRequest(BaseModel):
    scope: str = "dashboard"


class InvalidateCacheResponse(BaseModel):
    success: bool = True
    scope: str
    user_id: str
    invalidated: int


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/dashboard")
async def get_dashboard(
    response: Response,
    user: AuthUser = Depends(get_current_user),
    x_cache_bypass: Annotated[str | None, Header(description="'true' to skip the cache lookup")] = None,
) -> dict[str, Any]:
    """
    Aggregated dashboard payload.

    Served from a per-user cache for DASHBOARD_CACHE_TTL seconds. Send
    `x-cache-bypass: true` to force a rebuild (the result is still cached).
    """
    started = time.perf_counter()
    request_id = str(uuid.uuid4())
    bypass = (x_cache_bypass or "").lower() == "true"

    entry, hit = DashboardService.get_dashboard(user.id, bypass_cache=bypass)

    response.headers["Cache-Control"] = (
        f"public, max-age={settings.CDN_CACHE_MAX_AGE}, "
        f"stale-while-revalidate={settings.CDN_STALE_WHILE_REVALIDATE}"
    )
    response.headers["X-Cache-Status"] = "HIT" if hit else "MISS"
    response.headers["X-Request-Id"] = request_id
    if hit:
        response.headers["X-Cache-Hit-At"] = entry.value.get("cachedAt") or entry.cached_at_iso
        response.headers["X-Cache-Expires-At"] = entry.expires_at_iso

    elapsed_ms = round((time.perf_counter() - started) * 1000)
    response.headers["X-Response-Time-Ms"] = str(elapsed_ms)
    logger.info(f"dashboard request {request_id} user={user.id} cache={'HIT' if hit else 'MISS'} {elapsed_ms}ms")

    return entry.value


@router.post("/cache/invalidate", response_model=InvalidateCacheResponse)
async def invalidate_cache(
    request: InvalidateCacheRequest,
    user: AuthUser = Depends(get_current_user),
):
    """Drop the caller's cached entries in one scope (dashboard or search)."""
    valid_scopes = sorted(cache_service.CACHE_SCOPES)
    if request.scope not in cache_service.CACHE_SCOPES:
        raise UnknownCacheScopeError(request.scope, valid_scopes)

    invalidated = cache_service.invalidate_scope(request.scope, user.id)
    return InvalidateCacheResponse(
        scope=request.scope,
        user_id=str(user.id),
        invalidated=invalidated,
    )
