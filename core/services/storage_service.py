# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Handles file upload, removal and signed URLs in the file library bucket.
#
# Objects are stored at <user_id>/<uuid>-<filename> so a user's files share
# one prefix.
# =============================================================================

import logging
import re
import uuid

from lib.supabase_client import SupabaseClient
from app.config import settings
from app.exceptions import StorageError, StorageUploadError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def build_storage_path(user_id: str, filename: str) -> str:
    """Storage path for a new upload: <user_id>/<uuid>-<sanitized filename>."""
    safe_name = _UNSAFE_NAME_CHARS.sub("_", filename).strip("_") or "file"
    return f"{user_id}/{uuid.uuid4()}-{safe_name}"


class StorageService:
    """
    Service for Supabase Storage operations.

    Handles uploading, removing and signing files in the file library bucket.
    """

    @staticmethod
    def _bucket():
        client = SupabaseClient.get_client()
        return client.storage.from_(settings.STORAGE_BUCKET)

    @staticmethod
    def upload_file(
        user_id: str,
        file_content: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> str:
        """
        Upload raw file content to storage.

        Args:
            user_id: Owner UUID (first path segment)
            file_content: File bytes
            filename: Original filename
            content_type: MIME type reported by the client

        Returns:
            Storage path

        Raises:
            StorageUploadError: If upload fails
        """
        path = build_storage_path(str(user_id), filename)

        try:
            StorageService._bucket().upload(
                path=path,
                file=file_content,
                file_options={
                    "content-type": content_type or "application/octet-stream",
                    "upsert": "false",
                }
            )

            logger.info(f"Uploaded file to storage: {path} ({len(file_content)} bytes)")
            return path

        except Exception as e:
            logger.error(f"Storage upload failed: {e}")
            raise StorageUploadError(str(e))

    @staticmethod
    def remove_files(storage_paths: list[str]) -> None:
        """
        Remove objects from storage.

        Raises:
            StorageError: If removal fails
        """
        if not storage_paths:
            return

        try:
            StorageService._bucket().remove(storage_paths)
            logger.info(f"Removed {len(storage_paths)} object(s) from storage")

        except Exception as e:
            logger.error(f"Failed to remove storage objects: {e}")
            raise StorageError(", ".join(storage_paths), str(e))

    @staticmethod
    def create_signed_url(storage_path: str, expires_in: int | None = None) -> str:
        """
        Create a time-limited download URL.

        Args:
            storage_path: Path in storage bucket
            expires_in: Lifetime in seconds (default SIGNED_URL_EXPIRY_SECONDS)

        Returns:
            Signed URL string

        Raises:
            StorageError: If signing fails
        """
        expires_in = expires_in or settings.SIGNED_URL_EXPIRY_SECONDS

        try:
            result = StorageService._bucket().create_signed_url(storage_path, expires_in)
        except Exception as e:
            logger.error(f"Failed to sign {storage_path}: {e}")
            raise StorageError(storage_path, str(e))

        # storage3 has returned both spellings across releases
        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise StorageError(storage_path, "No signed URL returned")
        return url
