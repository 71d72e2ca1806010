# =============================================================================
# app/routers/publishing_queue.py - Publishing Queue Endpoints
# =============================================================================
# List, schedule, retry, cancel and manually publish queue jobs.
# All endpoints require authentication and only touch the caller's jobs.
# =============================================================================

import logging
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from app.auth import AuthUser, get_current_user
from app.exceptions import TaskQueueUnavailableError
from core.models.publishing import (
    BulkRetryRequest,
    BulkRetryResponse,
    JobActionResponse,
    QueueJob,
    QueueJobList,
    QueueStatus,
    ScheduleJobRequest,
    ScheduleJobResponse,
)
from core.services.publishing_queue_service import PublishingQueueService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=QueueJobList)
async def list_jobs(
    user: AuthUser = Depends(get_current_user),
    status: Annotated[str | None, Query(description="Status filter, or 'all'")] = None,
    platform: Annotated[str | None, Query(description="Platform filter, or 'all'")] = None,
    date_from: Annotated[date | None, Query(description="Scheduled on or after (YYYY-MM-DD)")] = None,
    date_to: Annotated[date | None, Query(description="Scheduled on or before (YYYY-MM-DD)")] = None,
    page: Annotated[int, Query(ge=1, description="Page number")] = 1,
    page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
):
    """
    List queue jobs, latest scheduled_time first.
    """
    jobs, total = PublishingQueueService.list_jobs(
        user.id,
        status=status,
        platform=platform,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
        page=page,
        page_size=page_size,
    )
    return QueueJobList(jobs=jobs, total=total, page=page, page_size=page_size)


@router.post("/schedule", response_model=ScheduleJobResponse)
async def schedule_job(
    request: ScheduleJobRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Add a job to the queue with status queued.

    The job is not published at scheduled_time automatically; use
    POST /publishing-queue/{job_id}/publish.
    """
    job = PublishingQueueService.schedule_job(
        user.id,
        title=request.title,
        description=request.description,
        platform=request.platform,
        scheduled_time=request.scheduled_time,
        payload=request.payload,
    )
    return ScheduleJobResponse(job=job)


@router.post("/bulk-retry", response_model=BulkRetryResponse)
async def bulk_retry(
    request: BulkRetryRequest,
    user: AuthUser = Depends(get_current_user),
):
    """
    Move every failed or cancelled job among job_ids back to queued.

    Unknown ids and jobs in other statuses are skipped.
    """
    retried = PublishingQueueService.bulk_retry(request.job_ids, user.id)
    return BulkRetryResponse(retried=retried)


@router.get("/{job_id}", response_model=QueueJob)
async def get_job(
    job_id: Annotated[UUID, Path(description="Queue job UUID")],
    user: AuthUser = Depends(get_current_user),
):
    return PublishingQueueService.get_job(job_id, user.id)


@router.post("/{job_id}/retry", response_model=JobActionResponse)
async def retry_job(
    job_id: Annotated[UUID, Path(description="Queue job UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """Retry a failed or cancelled job (400 JOB_NOT_RETRIABLE otherwise)."""
    PublishingQueueService.retry_job(job_id, user.id)
    return JobActionResponse(job_id=str(job_id), status=QueueStatus.QUEUED)


@router.post("/{job_id}/publish", response_model=JobActionResponse)
async def publish_job(
    job_id: Annotated[UUID, Path(description="Queue job UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """
    Publish a queued or failed job now.

    The job moves to processing and the publish task is queued. If the task
    queue is down the job goes back to its previous status and 503 is
    returned.
    """
    _, previous = PublishingQueueService.start_manual_publish(job_id, user.id)

    try:
        from workers.tasks import publish_queue_job

        result = publish_queue_job.delay(str(job_id))
    except Exception as e:
        logger.error(f"Failed to enqueue publish for job {job_id}: {e}")
        PublishingQueueService.restore_status(job_id, user.id, previous)
        raise TaskQueueUnavailableError(str(e))

    return JobActionResponse(job_id=str(job_id), status=QueueStatus.PROCESSING, task_id=result.id)


@router.post("/{job_id}/cancel", response_model=JobActionResponse)
async def cancel_job(
    job_id: Annotated[UUID, Path(description="Queue job UUID")],
    user: AuthUser = Depends(get_current_user),
):
    """Cancel a job that is still queued (400 JOB_NOT_CANCELLABLE otherwise)."""
    PublishingQueueService.cancel_job(job_id, user.id)
    return JobActionResponse(job_id=str(job_id), status=QueueStatus.CANCELLED)
