# =============================================================================
# app/routers/content.py - Content Editor Endpoints
# =============================================================================
# CRUD for content items plus version history and bulk status changes.
# All endpoints require authentication.
# =============================================================================

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from app.auth import AuthUser, get_current_user
from core.models.content import BulkStatusRequest, ContentCreate, ContentUpdate
from core.services.content_service import ContentService

router = APIRouter()


@router.get("")
async def list_content(
    user: AuthUser = Depends(get_current_user),
    status: Annotated[str | None, Query(description="Status filter, or 'all'")] = None,
    channel: Annotated[str | None, Query(description="Channel filter, or 'all'")] = None,
    assignee_id: Annotated[str | None, Query(description="Only items assigned to this user")] = None,
    search: Annotated[str | None, Query(description="Match title or description")] = None,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
) -> dict[str, Any]:
    items, total = ContentService.list_items(
        user.id,
        status=status,
        channel=channel,
        assignee_id=assignee_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.post("")
async def create_content(
    request: ContentCreate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Create a content item (status defaults to draft, channel to instagram)."""
    return ContentService.create_item(user.id, request.model_dump(mode="json"))


@router.post("/bulk-status")
async def bulk_status(
    request: BulkStatusRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Set the status of several items at once. An empty id list changes nothing."""
    updated = ContentService.bulk_update_status(request.ids, request.status.value, user.id)
    return {"success": True, "updated": updated}


@router.get("/{content_id}")
async def get_content(
    content_id: Annotated[UUID, Path(description="Content item UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ContentService.get_item(content_id, user.id)


@router.patch("/{content_id}")
async def update_content(
    content_id: Annotated[UUID, Path(description="Content item UUID")],
    request: ContentUpdate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Partially update an item.

    Changing content_body stores the previous body as a new version.
    """
    changes = request.model_dump(mode="json", exclude_unset=True)
    return ContentService.update_item(content_id, user.id, changes)


@router.delete("/{content_id}")
async def delete_content(
    content_id: Annotated[UUID, Path(description="Content item UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    ContentService.delete_item(content_id, user.id)
    return {"success": True}


@router.get("/{content_id}/versions")
async def list_versions(
    content_id: Annotated[UUID, Path(description="Content item UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Previous bodies of an item, newest first."""
    return {"versions": ContentService.list_versions(content_id, user.id)}
