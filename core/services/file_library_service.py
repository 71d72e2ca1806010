# =============================================================================
# core/services/file_library_service.py - File Library Business Logic
# =============================================================================
# Metadata rows in file_library plus the objects behind them in Storage.
#
# Import and export go through pandas so CSV quoting follows the usual
# rules: values containing a comma, quote or newline are quoted and inner
# quotes doubled.
# =============================================================================

import io
import json
import logging
import os
import re
from typing import Any
from uuid import UUID

import pandas as pd

from app.config import settings
from app.exceptions import (
    FileTooLargeError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from core.models.file_library import EXPORT_COLUMNS, FileStatus
from core.services import cache_service
from core.services.storage_service import StorageService
from lib.supabase_client import SupabaseClient
from lib.utils import ilike_any, normalize_uuid, utc_now_iso

logger = logging.getLogger(__name__)

TABLE = "file_library"

_TAG_SEPARATORS = re.compile(r"[;,|]")


def _not_found(file_id) -> ResourceNotFoundError:
    return ResourceNotFoundError("File", str(file_id))


def merge_tags(existing: list[str] | None, new: list[str]) -> list[str]:
    """Append new tags that aren't already present, keeping existing order."""
    merged = list(existing or [])
    for tag in new:
        tag = tag.strip()
        if tag and tag not in merged:
            merged.append(tag)
    return merged


def split_tags(value: str) -> list[str]:
    """Split an imported tag cell on ; , or | into lower-case tags."""
    return [tag.strip().lower() for tag in _TAG_SEPARATORS.split(value) if tag.strip()]


def records_to_csv(records: list[dict[str, Any]]) -> str:
    """Render file rows as CSV with EXPORT_COLUMNS, tags joined by ';'."""
    rows = []
    for record in records:
        tags = record.get("tags")
        row = {column: record.get(column) for column in EXPORT_COLUMNS}
        row["tags"] = ";".join(str(t) for t in tags) if isinstance(tags, list) else (tags or "")
        rows.append(row)

    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    return df.to_csv(index=False, lineterminator="\n").rstrip("\n")


def parse_csv_records(content: str) -> list[dict[str, Any]]:
    """
    Parse imported CSV into file records.

    The title comes from the first non-empty of title, name, file_name.
    Rows without one are skipped.

    Raises:
        InvalidRequestError: If the CSV can't be parsed
    """
    try:
        df = pd.read_csv(
            io.StringIO(content),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise InvalidRequestError(f"Invalid CSV: {e}")

    df.columns = [str(column).strip() for column in df.columns]

    records = []
    for row in df.to_dict(orient="records"):
        row = {key: (value or "").strip() for key, value in row.items()}
        title = row.get("title") or row.get("name") or row.get("file_name")
        if not title:
            continue

        tags_cell = row.get("tags") or row.get("tag") or ""
        records.append({
            "title": title,
            "description": row.get("description") or None,
            "file_name": row.get("file_name") or row.get("name") or title,
            "file_type": row.get("file_type") or row.get("type") or None,
            "tags": split_tags(tags_cell),
        })
    return records


def parse_json_records(content: str | list | dict) -> list[dict[str, Any]]:
    """
    Parse imported JSON (an object or an array of objects) into file records.

    Objects without a title are skipped.

    Raises:
        InvalidRequestError: If the text isn't valid JSON
    """
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid JSON: {e}")

    items = content if isinstance(content, list) else [content]

    records = []
    for item in items:
        if not isinstance(item, dict) or not str(item.get("title") or "").strip():
            continue
        title = str(item["title"]).strip()
        tags = item.get("tags")
        description = item.get("description")
        file_type = item.get("file_type") or item.get("type")
        records.append({
            "title": title,
            "description": str(description) if description is not None else None,
            "file_name": str(item.get("file_name") or item.get("name") or title),
            "file_type": str(file_type) if file_type else None,
            "tags": [str(tag) for tag in tags] if isinstance(tags, list) else [],
        })
    return records


class FileLibraryService:
    """
    Service for file library operations.

    Every method is scoped by user_id.
    """

    @staticmethod
    def list_files(
        user_id: UUID | str,
        search: str | None = None,
        tag: str | None = None,
        file_type: str | None = None,
        status: str | None = FileStatus.ACTIVE.value,
        folder_id: str | None = None,
        page: int = 1,
        page_size: int = 24,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List the user's files, most recently updated first.

        Returns:
            Tuple of (files, total count)
        """
        client = SupabaseClient.get_client()
        offset = (page - 1) * page_size

        query = (
            client.table(TABLE)
            .select("*", count="exact")
            .eq("user_id", normalize_uuid(user_id))
        )
        if status and status != "all":
            query = query.eq("status", status)
        if file_type:
            query = query.eq("file_type", file_type)
        if folder_id:
            query = query.eq("folder_id", folder_id)
        if tag:
            query = query.contains("tags", [tag])
        if search and search.strip():
            query = query.or_(ilike_any(["title", "description"], search))

        try:
            response = (
                query
                .order("updated_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list files: {e}")
            raise

        return response.data or [], response.count or 0

    @staticmethod
    def get_file(file_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        row = SupabaseClient.fetch_owned_row(TABLE, file_id, user_id)
        if not row:
            raise _not_found(file_id)
        return row

    @staticmethod
    def create_file(user_id: UUID | str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a metadata row (status active, version 1)."""
        row = {
            **data,
            "user_id": normalize_uuid(user_id),
            "title": data["title"].strip(),
            "file_name": data.get("file_name") or data["title"].strip(),
            "tags": data.get("tags") or [],
            "status": FileStatus.ACTIVE.value,
            "version": 1,
            "updated_at": utc_now_iso(),
        }
        created = SupabaseClient.insert_row(TABLE, row)
        logger.info(f"Created file {created['id']} for user {user_id}")
        cache_service.invalidate_user(user_id)
        return created

    @staticmethod
    def update_file(file_id: str | UUID, user_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Apply a partial update.

        Raises:
            ResourceNotFoundError: If the file doesn't exist for the user
        """
        if not changes:
            return FileLibraryService.get_file(file_id, user_id)

        updated = SupabaseClient.update_owned_row(
            TABLE, file_id, user_id, {**changes, "updated_at": utc_now_iso()}
        )
        if not updated:
            raise _not_found(file_id)

        logger.info(f"Updated file {file_id}: {sorted(changes)}")
        cache_service.invalidate_user(user_id)
        return updated

    @staticmethod
    def delete_file(file_id: str | UUID, user_id: UUID | str) -> None:
        """
        Delete a file, removing its storage object first.

        Raises:
            ResourceNotFoundError: If the file doesn't exist for the user
        """
        row = FileLibraryService.get_file(file_id, user_id)
        if row.get("storage_path"):
            StorageService.remove_files([row["storage_path"]])

        SupabaseClient.delete_owned_row(TABLE, file_id, user_id)
        logger.info(f"Deleted file {file_id} for user {user_id}")
        cache_service.invalidate_user(user_id)

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    @staticmethod
    def upload_file(
        user_id: UUID | str,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        title: str | None = None,
        description: str | None = None,
        folder_id: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Store an uploaded file and create its metadata row.

        Raises:
            FileTooLargeError: If the file exceeds MAX_UPLOAD_SIZE_MB
            StorageUploadError: If the upload fails
        """
        if len(content) > settings.max_upload_size_bytes:
            raise FileTooLargeError(len(content) / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)

        storage_path = StorageService.upload_file(
            normalize_uuid(user_id), content, filename, content_type
        )
        extension = os.path.splitext(filename)[1].lstrip(".").lower()

        try:
            return FileLibraryService.create_file(user_id, {
                "title": (title or filename).strip() or filename,
                "description": description,
                "file_name": filename,
                "file_type": extension or content_type,
                "file_size": len(content),
                "storage_path": storage_path,
                "folder_id": folder_id,
                "tags": tags or [],
            })
        except Exception:
            # Don't leave an orphaned object behind
            StorageService.remove_files([storage_path])
            raise

    @staticmethod
    def get_signed_url(file_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        """
        Signed download URL for a stored file; touches last_used_at.

        Raises:
            ResourceNotFoundError: If the file doesn't exist for the user
            InvalidRequestError: If the file has no storage object
        """
        row = FileLibraryService.get_file(file_id, user_id)
        if not row.get("storage_path"):
            raise InvalidRequestError("File has no stored object")

        expires_in = settings.SIGNED_URL_EXPIRY_SECONDS
        url = StorageService.create_signed_url(row["storage_path"], expires_in)
        SupabaseClient.update_owned_row(TABLE, file_id, user_id, {"last_used_at": utc_now_iso()})
        return {"url": url, "expires_in": expires_in}

    # -------------------------------------------------------------------------
    # Bulk Actions
    # -------------------------------------------------------------------------

    @staticmethod
    def _owned_rows(ids: list[str | UUID], user_id: UUID | str, columns: str = "*") -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        response = (
            client.table(TABLE)
            .select(columns)
            .eq("user_id", normalize_uuid(user_id))
            .in_("id", [normalize_uuid(item_id) for item_id in ids])
            .execute()
        )
        return response.data or []

    @staticmethod
    def bulk_delete(ids: list[str | UUID], user_id: UUID | str) -> int:
        """Delete the user's files among ids. Returns the number deleted."""
        if not ids:
            return 0

        rows = FileLibraryService._owned_rows(ids, user_id, "id, storage_path")
        if not rows:
            return 0

        StorageService.remove_files([row["storage_path"] for row in rows if row.get("storage_path")])

        client = SupabaseClient.get_client()
        client.table(TABLE).delete().eq("user_id", normalize_uuid(user_id)).in_(
            "id", [row["id"] for row in rows]
        ).execute()

        logger.info(f"Bulk deleted {len(rows)} files for user {user_id}")
        cache_service.invalidate_user(user_id)
        return len(rows)

    @staticmethod
    def bulk_tag(ids: list[str | UUID], tags: list[str], user_id: UUID | str) -> int:
        """Add tags to the user's files among ids. Returns the number updated."""
        if not ids or not tags:
            return 0

        updated = 0
        now = utc_now_iso()
        for row in FileLibraryService._owned_rows(ids, user_id, "id, tags"):
            merged = merge_tags(row.get("tags"), tags)
            if merged == (row.get("tags") or []):
                continue
            SupabaseClient.update_owned_row(TABLE, row["id"], user_id, {"tags": merged, "updated_at": now})
            updated += 1

        logger.info(f"Tagged {updated} files for user {user_id}")
        if updated:
            cache_service.invalidate_user(user_id)
        return updated

    # -------------------------------------------------------------------------
    # Import / Export
    # -------------------------------------------------------------------------

    @staticmethod
    def export_files(user_id: UUID | str, format: str = "json", ids: list[str | UUID] | None = None) -> dict[str, Any]:
        """Export the user's files (optionally only ids) as JSON rows or CSV text."""
        client = SupabaseClient.get_client()
        query = client.table(TABLE).select("*").eq("user_id", normalize_uuid(user_id))
        if ids:
            query = query.in_("id", [normalize_uuid(file_id) for file_id in ids])
        records = query.order("updated_at", desc=True).execute().data or []

        logger.info(f"Exporting {len(records)} files as {format} for user {user_id}")
        if format == "csv":
            return {"data": records_to_csv(records), "format": "csv"}
        return {"data": records, "format": "json"}

    @staticmethod
    def import_files(user_id: UUID | str, format: str, content: Any) -> list[str]:
        """
        Create file records from CSV or JSON content.

        Returns:
            IDs of the created rows

        Raises:
            InvalidRequestError: If content is missing, unparseable, or has
                                 no record with a title
        """
        if content is None or (isinstance(content, str) and not content.strip()):
            raise InvalidRequestError("content required")

        if format == "csv":
            if not isinstance(content, str):
                raise InvalidRequestError("Invalid CSV: content must be text")
            records = parse_csv_records(content)
        else:
            records = parse_json_records(content)

        if not records:
            raise InvalidRequestError("No valid records to import")

        now = utc_now_iso()
        rows = [
            {
                **record,
                "user_id": normalize_uuid(user_id),
                "status": FileStatus.ACTIVE.value,
                "file_size": None,
                "storage_path": None,
                "version": 1,
                "updated_at": now,
            }
            for record in records
        ]

        client = SupabaseClient.get_client()
        try:
            response = client.table(TABLE).insert(rows).execute()
        except Exception as e:
            logger.error(f"File import failed for user {user_id}: {e}")
            raise

        ids = [row["id"] for row in response.data or []]
        logger.info(f"Imported {len(ids)} files for user {user_id}")
        cache_service.invalidate_user(user_id)
        return ids
