# =============================================================================
# app/routers/search.py - Global Search Endpoint
# =============================================================================

from typing import Any

from fastapi import APIRouter, Depends

from app.auth import AuthUser, get_current_user
from core.models.search import SearchRequest
from core.services.search_service import SearchService

router = APIRouter()


@router.post("")
async def search(
    request: SearchRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Search files, content items and research notes.

    Results are merged newest first and cut to limit (max 50). Repeating
    the same search within SEARCH_CACHE_TTL seconds is served from cache.
    """
    return SearchService.search(
        user.id,
        query=request.query,
        types=[t.value for t in request.types],
        limit=request.limit,
    )
