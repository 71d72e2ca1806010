# =============================================================================
# core/services/publishing_queue_service.py - Publishing Queue Business Logic
# =============================================================================
# Owns every status change of a publishing_queue_logs row.
#
# User-facing transitions are guarded twice: the job is read and its status
# checked (so the caller gets a precise error), then the update itself is
# filtered on the allowed statuses so a concurrent change can't be
# overwritten.
#
# There is no scheduler here: a queued job only moves when a user asks for
# a manual publish, and a failed publish is never retried automatically.
# =============================================================================

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from app.exceptions import (
    InvalidJobStateError,
    InvalidRequestError,
    JobNotCancellableError,
    JobNotFoundError,
    JobNotPublishableError,
    JobNotRetriableError,
)
from core.models.publishing import (
    CANCELLABLE_STATUSES,
    DEFAULT_PLATFORM,
    PUBLISHABLE_STATUSES,
    RETRIABLE_STATUSES,
    QueueStatus,
    status_values,
)
from core.services import cache_service
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, utc_now_iso, valid_uuids

logger = logging.getLogger(__name__)

TABLE = "publishing_queue_logs"


class PublishingQueueService:
    """
    Service for publishing queue operations.

    All user-facing methods are scoped by user_id; a job owned by someone
    else is reported as not found.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_jobs(
        user_id: UUID | str,
        status: str | None = None,
        platform: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List the user's queue jobs, latest scheduled first.

        Args:
            user_id: Owner UUID
            status: Status filter ("all" or None for every status)
            platform: Platform filter ("all" or None for every platform)
            date_from: YYYY-MM-DD lower bound on scheduled_time (inclusive)
            date_to: YYYY-MM-DD upper bound on scheduled_time (whole day inclusive)
            page: Page number (1-indexed)
            page_size: Items per page

        Returns:
            Tuple of (jobs list, total count)
        """
        client = SupabaseClient.get_client()
        offset = (page - 1) * page_size

        try:
            query = (
                client.table(TABLE)
                .select("*", count="exact")
                .eq("user_id", normalize_uuid(user_id))
            )

            if status and status != "all":
                query = query.eq("status", status)
            if platform and platform != "all":
                query = query.eq("platform", platform)
            if date_from:
                query = query.gte("scheduled_time", date_from)
            if date_to:
                query = query.lte("scheduled_time", f"{date_to}T23:59:59.999Z")

            response = (
                query
                .order("scheduled_time", desc=True)
                .order("created_at", desc=True)
                .range(offset, offset + page_size - 1)
                .execute()
            )

            jobs = response.data or []
            total = response.count or 0
            return jobs, total

        except Exception as e:
            logger.error(f"Failed to list queue jobs: {e}")
            raise

    @staticmethod
    def get_job(job_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        """
        Get one job owned by the user.

        Raises:
            JobNotFoundError: If the job doesn't exist or belongs to someone else
        """
        if not job_id:
            raise InvalidRequestError("jobId required")

        job = SupabaseClient.fetch_owned_row(TABLE, job_id, user_id)
        if not job:
            raise JobNotFoundError(str(job_id))
        return job

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    @staticmethod
    def schedule_job(
        user_id: UUID | str,
        title: str | None,
        description: str | None = None,
        platform: str | None = None,
        scheduled_time: datetime | str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Add a job to the queue in status queued.

        Args:
            user_id: Owner UUID
            title: Job title (required, non-blank)
            description: Optional description
            platform: Target platform (default: instagram)
            scheduled_time: When the post should go out (informational only)
            payload: Publish data (content_body, thumbnail_url, hashtags, cta)

        Returns:
            Inserted job dict

        Raises:
            InvalidRequestError: If title is missing or blank
        """
        if not title or not isinstance(title, str) or not title.strip():
            raise InvalidRequestError("title required")

        if isinstance(scheduled_time, datetime):
            scheduled_time = scheduled_time.isoformat()

        data = {
            "user_id": normalize_uuid(user_id),
            "title": title.strip(),
            "description": description,
            "platform": platform or DEFAULT_PLATFORM,
            "scheduled_time": scheduled_time,
            "payload": payload or {},
            "status": QueueStatus.QUEUED.value,
        }

        try:
            job = SupabaseClient.insert_row(TABLE, data)
            logger.info(f"Scheduled job {job['id']} on {data['platform']} for user {user_id}")
        except Exception as e:
            logger.error(f"Failed to schedule job: {e}")
            raise

        cache_service.invalidate_user(user_id)
        return job

    # -------------------------------------------------------------------------
    # User Transitions
    # -------------------------------------------------------------------------

    @staticmethod
    def _guarded_update(
        job_id: str | UUID,
        user_id: UUID | str,
        allowed: frozenset[QueueStatus],
        changes: dict[str, Any],
        error_cls: type[InvalidJobStateError],
    ) -> dict[str, Any]:
        """
        Apply changes to a job only while its status is in allowed.

        Raises:
            JobNotFoundError: If the job doesn't exist for the user
            error_cls: If the job's status is not in allowed
        """
        job = PublishingQueueService.get_job(job_id, user_id)
        allowed_values = status_values(allowed)

        if job["status"] not in allowed_values:
            raise error_cls(str(job_id), job["status"], allowed_values)

        client = SupabaseClient.get_client()
        data = {**changes, "updated_at": utc_now_iso()}

        try:
            response = (
                client.table(TABLE)
                .update(data)
                .eq("id", normalize_uuid(job_id))
                .eq("user_id", normalize_uuid(user_id))
                .in_("status", allowed_values)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to update job {job_id}: {e}")
            raise

        if not response.data:
            # Status moved between the read and the write
            current = PublishingQueueService.get_job(job_id, user_id)
            raise error_cls(str(job_id), current["status"], allowed_values)

        cache_service.invalidate_user(user_id)
        return response.data[0]

    @staticmethod
    def retry_job(job_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        """
        Put a failed or cancelled job back in the queue.

        Clears error_logs. Nothing is published until a manual publish.

        Raises:
            JobNotFoundError: If the job doesn't exist for the user
            JobNotRetriableError: If the job is not failed or cancelled
        """
        job = PublishingQueueService._guarded_update(
            job_id,
            user_id,
            RETRIABLE_STATUSES,
            {"status": QueueStatus.QUEUED.value, "error_logs": None},
            JobNotRetriableError,
        )
        logger.info(f"Retried job {job_id} for user {user_id}")
        return job

    @staticmethod
    def bulk_retry(job_ids: list[str], user_id: UUID | str) -> int:
        """
        Retry every retriable job among job_ids.

        Ids that aren't UUIDs, don't exist, belong to another user or aren't
        failed or cancelled are skipped silently.

        Returns:
            Number of jobs moved back to queued

        Raises:
            InvalidRequestError: If job_ids is empty
        """
        if not job_ids:
            raise InvalidRequestError("jobIds array required")

        candidate_ids = valid_uuids(job_ids)
        if not candidate_ids:
            return 0

        client = SupabaseClient.get_client()
        user_id_str = normalize_uuid(user_id)
        allowed_values = status_values(RETRIABLE_STATUSES)

        try:
            response = (
                client.table(TABLE)
                .select("id")
                .eq("user_id", user_id_str)
                .in_("id", candidate_ids)
                .in_("status", allowed_values)
                .execute()
            )
            retriable_ids = [row["id"] for row in response.data or []]

            if not retriable_ids:
                return 0

            updated = (
                client.table(TABLE)
                .update({
                    "status": QueueStatus.QUEUED.value,
                    "error_logs": None,
                    "updated_at": utc_now_iso(),
                })
                .eq("user_id", user_id_str)
                .in_("id", retriable_ids)
                .in_("status", allowed_values)
                .execute()
            )
        except Exception as e:
            logger.error(f"Bulk retry failed for user {user_id}: {e}")
            raise

        retried = len(updated.data or [])
        logger.info(f"Bulk retried {retried}/{len(job_ids)} jobs for user {user_id}")
        cache_service.invalidate_user(user_id)
        return retried

    @staticmethod
    def start_manual_publish(job_id: str | UUID, user_id: UUID | str) -> tuple[dict[str, Any], str]:
        """
        Move a queued or failed job to processing.

        Returns:
            Tuple of (updated job, status before the change) so the caller
            can roll back if the publish task can't be enqueued.

        Raises:
            JobNotFoundError: If the job doesn't exist for the user
            JobNotPublishableError: If the job is not queued or failed
        """
        previous = PublishingQueueService.get_job(job_id, user_id)["status"]
        job = PublishingQueueService._guarded_update(
            job_id,
            user_id,
            PUBLISHABLE_STATUSES,
            {"status": QueueStatus.PROCESSING.value},
            JobNotPublishableError,
        )
        logger.info(f"Job {job_id} moved {previous} -> processing by user {user_id}")
        return job, previous

    @staticmethod
    def restore_status(job_id: str | UUID, user_id: UUID | str, status: str) -> None:
        """Undo start_manual_publish when the publish task never got queued."""
        client = SupabaseClient.get_client()
        try:
            (
                client.table(TABLE)
                .update({"status": status, "updated_at": utc_now_iso()})
                .eq("id", normalize_uuid(job_id))
                .eq("user_id", normalize_uuid(user_id))
                .eq("status", QueueStatus.PROCESSING.value)
                .execute()
            )
            logger.warning(f"Restored job {job_id} to {status}")
        except Exception as e:
            logger.error(f"Failed to restore job {job_id} to {status}: {e}")
            raise
        cache_service.invalidate_user(user_id)

    @staticmethod
    def cancel_job(job_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        """
        Cancel a job that is still waiting in the queue.

        Raises:
            JobNotFoundError: If the job doesn't exist for the user
            JobNotCancellableError: If the job is not queued
        """
        job = PublishingQueueService._guarded_update(
            job_id,
            user_id,
            CANCELLABLE_STATUSES,
            {"status": QueueStatus.CANCELLED.value},
            JobNotCancellableError,
        )
        logger.info(f"Cancelled job {job_id} for user {user_id}")
        return job

    # -------------------------------------------------------------------------
    # Worker Transitions
    # -------------------------------------------------------------------------

    @staticmethod
    def fetch_job_for_worker(job_id: str) -> dict[str, Any] | None:
        """Load a job by id without owner scoping (workers act for the owner)."""
        client = SupabaseClient.get_client()
        response = client.table(TABLE).select("*").eq("id", job_id).limit(1).execute()
        rows = response.data or []
        return rows[0] if rows else None

    @staticmethod
    def finish_processing(
        job: dict[str, Any],
        succeeded: bool,
        error: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Record the outcome of a publish attempt.

        Only a job still in processing is updated; if a user changed it in
        the meantime the outcome is dropped and None is returned.
        """
        client = SupabaseClient.get_client()
        data: dict[str, Any] = {
            "status": (QueueStatus.PUBLISHED if succeeded else QueueStatus.FAILED).value,
            "error_logs": None if succeeded else error,
            "updated_at": utc_now_iso(),
        }

        response = (
            client.table(TABLE)
            .update(data)
            .eq("id", job["id"])
            .eq("status", QueueStatus.PROCESSING.value)
            .execute()
        )

        cache_service.invalidate_user(job["user_id"])
        rows = response.data or []
        if not rows:
            logger.warning(f"Job {job['id']} left processing before its outcome was recorded")
            return None

        logger.info(f"Job {job['id']} -> {data['status']}")
        return rows[0]
