# =============================================================================
# core/models/file_library.py - File Library Schemas
# =============================================================================
# Metadata for assets stored in the file-library Storage bucket, plus the
# bulk, import and export request shapes.
# =============================================================================

from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class FileStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


# Column order of CSV exports
EXPORT_COLUMNS = [
    "title",
    "description",
    "file_name",
    "file_type",
    "tags",
    "created_at",
    "updated_at",
]


class FileCreate(BaseModel):
    """
    Metadata-only file record (no upload).

    Example:
        {"title": "Brand guidelines", "file_type": "pdf", "tags": ["brand"]}
    """
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    file_name: str | None = None
    file_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    storage_path: str | None = None
    folder_id: str | None = None
    tags: list[str] = Field(default_factory=list)


class FileUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: FileStatus | None = None
    folder_id: str | None = None
    tags: list[str] | None = None


class BulkIdsRequest(BaseModel):
    ids: list[UUID] = Field(default_factory=list)


class BulkTagRequest(BaseModel):
    ids: list[UUID] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ExportRequest(BaseModel):
    format: Literal["json", "csv"] = "json"
    ids: list[UUID] | None = Field(default=None, description="Restrict export to these files")


class ImportRequest(BaseModel):
    """
    Import file records.

    `content` is CSV text when format is csv, and an object or an array of
    objects (or JSON text encoding one) when format is json.
    """
    format: Literal["json", "csv"] = "json"
    content: str | list[dict[str, Any]] | dict[str, Any]


class ImportResponse(BaseModel):
    success: bool = True
    imported: int
    ids: list[str]
