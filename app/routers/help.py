# =============================================================================
# app/routers/help.py - Help & Contact Endpoints
# =============================================================================

from typing import Any

from fastapi import APIRouter, Depends

from app.auth import AuthUser, get_current_user
from core.models.help import HelpRequestCreate
from core.services.help_service import HelpService

router = APIRouter()


@router.get("")
async def list_help_requests(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"items": HelpService.list_requests(user.id)}


@router.post("")
async def create_help_request(
    request: HelpRequestCreate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    item = HelpService.create_request(user.id, request.title, request.description)
    return {"item": item}
