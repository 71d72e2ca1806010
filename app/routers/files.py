# =============================================================================
# app/routers/files.py - File Library Endpoints
# =============================================================================
# Metadata CRUD, multipart upload to Supabase Storage, signed download URLs,
# bulk delete/tag and JSON/CSV import and export.
# All endpoints require authentication.
# =============================================================================

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile

from app.auth import AuthUser, get_current_user
from core.models.file_library import (
    BulkIdsRequest,
    BulkTagRequest,
    ExportRequest,
    FileCreate,
    FileUpdate,
    ImportRequest,
    ImportResponse,
)
from core.services.file_library_service import FileLibraryService, split_tags

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_files(
    user: AuthUser = Depends(get_current_user),
    search: Annotated[str | None, Query(description="Match title or description")] = None,
    tag: Annotated[str | None, Query(description="Only files carrying this tag")] = None,
    file_type: Annotated[str | None, Query(description="File type, e.g. 'pdf'")] = None,
    status: Annotated[str, Query(description="'active', 'archived' or 'all'")] = "active",
    folder_id: Annotated[str | None, Query(description="Folder filter")] = None,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 24,
) -> dict[str, Any]:
    files, total = FileLibraryService.list_files(
        user.id,
        search=search,
        tag=tag,
        file_type=file_type,
        status=status,
        folder_id=folder_id,
        page=page,
        page_size=page_size,
    )
    return {"files": files, "total": total, "page": page, "page_size": page_size}


@router.post("")
async def create_file(
    request: FileCreate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Create a metadata-only file record."""
    return FileLibraryService.create_file(user.id, request.model_dump())


@router.post("/upload")
async def upload_file(
    user: AuthUser = Depends(get_current_user),
    file: UploadFile = File(..., description="File to store"),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    folder_id: str | None = Form(default=None),
    tags: str | None = Form(default=None, description="Tags separated by ; , or |"),
) -> dict[str, Any]:
    """
    Upload a file to the library.

    Stored at <user_id>/<uuid>-<filename> in the file-library bucket.
    Files over MAX_UPLOAD_SIZE_MB are rejected with 413.
    """
    content = await file.read()
    logger.info(f"Upload from user {user.id}: {file.filename} ({len(content)} bytes)")

    return FileLibraryService.upload_file(
        user.id,
        filename=file.filename or "upload",
        content=content,
        content_type=file.content_type,
        title=title,
        description=description,
        folder_id=folder_id,
        tags=split_tags(tags) if tags else [],
    )


@router.post("/bulk-delete")
async def bulk_delete(
    request: BulkIdsRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Delete several files and their stored objects."""
    deleted = FileLibraryService.bulk_delete(request.ids, user.id)
    return {"success": True, "deleted": deleted}


@router.post("/bulk-tag")
async def bulk_tag(
    request: BulkTagRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Add tags to several files; existing tags keep their order."""
    updated = FileLibraryService.bulk_tag(request.ids, request.tags, user.id)
    return {"success": True, "updated": updated}


@router.post("/export")
async def export_files(
    request: ExportRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Export file records as JSON rows or CSV text: {data, format}."""
    return FileLibraryService.export_files(user.id, request.format, request.ids)


@router.post("/import", response_model=ImportResponse)
async def import_files(
    request: ImportRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Create file records from CSV text or JSON.

    Records without a title are skipped; 400 when none are left.
    """
    ids = FileLibraryService.import_files(user.id, request.format, request.content)
    return ImportResponse(imported=len(ids), ids=ids)


@router.get("/{file_id}")
async def get_file(
    file_id: Annotated[UUID, Path(description="File UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return FileLibraryService.get_file(file_id, user.id)


@router.patch("/{file_id}")
async def update_file(
    file_id: Annotated[UUID, Path(description="File UUID")],
    request: FileUpdate,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    changes = request.model_dump(mode="json", exclude_unset=True)
    return FileLibraryService.update_file(file_id, user.id, changes)


@router.delete("/{file_id}")
async def delete_file(
    file_id: Annotated[UUID, Path(description="File UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    FileLibraryService.delete_file(file_id, user.id)
    return {"success": True}


@router.get("/{file_id}/signed-url")
async def get_signed_url(
    file_id: Annotated[UUID, Path(description="File UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Time-limited download URL (400 when the record has no stored object)."""
    return FileLibraryService.get_signed_url(file_id, user.id)
