# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Background tasks for work the API hands off.
#
# Tasks:
# - publish_queue_job: Publish one processing queue job to its platform
# - run_research_job: Run a queued research / fact-check job
#
# Both tasks record their outcome on the row and push a WebSocket event;
# they never raise, so Celery always sees SUCCESS with a result dict.
# =============================================================================

import logging
from typing import Any

from celery import current_task, shared_task

from app.exceptions import CreatorOpsException
from core.models.notification import NotificationType
from core.models.publishing import QueueStatus
from core.models.research import ResearchJobStatus
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)


# =============================================================================
# Task State Updates
# =============================================================================

def update_progress(current: int, total: int, message: str = "Processing..."):
    """
    Update task progress for polling via GET /tasks/{task_id}.

    Args:
        current: Current step number
        total: Total steps
        message: Status message
    """
    # Eager / direct calls have no task id to store progress under
    if current_task and current_task.request.id:
        current_task.update_state(
            state="PROGRESS",
            meta={
                "current": current,
                "total": total,
                "percent": int((current / total) * 100),
                "message": message,
            }
        )


def _error_message(exc: Exception) -> str:
    if isinstance(exc, (CreatorOpsException, ApplicationError)):
        return exc.message
    return str(exc) or exc.__class__.__name__


# =============================================================================
# Publishing
# =============================================================================

def _publish(job: dict[str, Any]) -> dict[str, Any]:
    """Send the job payload to its platform. Raises on failure."""
    platform = (job.get("platform") or "").lower()
    if platform != "instagram":
        raise ValueError(f"Publishing to {job.get('platform')} is not supported")

    from core.services.instagram_service import InstagramService

    payload = job.get("payload") or {}
    return InstagramService.publish_post(
        job["user_id"],
        content_body=payload.get("content_body"),
        thumbnail_url=payload.get("thumbnail_url"),
        hashtags=payload.get("hashtags"),
        cta=payload.get("cta"),
    )


@shared_task(bind=True, name="workers.tasks.publish_queue_job")
def publish_queue_job(self, job_id: str) -> dict[str, Any]:
    """
    Publish a queue job that a user moved to processing.

    Steps:
    1. Load the job; skip it unless it is still processing
    2. Publish to the platform
    3. Record published / failed (+ error_logs)
    4. Notify the user and emit job_status_changed

    Returns:
        Dict with success, job_id, status and error (on failure)
    """
    from app.websocket.broadcast import publish_job_status
    from core.services.notification_service import NotificationService
    from core.services.publishing_queue_service import PublishingQueueService

    logger.info(f"Publishing queue job {job_id}")
    update_progress(1, 3, "Loading job...")

    try:
        job = PublishingQueueService.fetch_job_for_worker(job_id)
    except Exception as e:
        logger.error(f"Failed to load queue job {job_id}: {e}")
        return {"success": False, "job_id": job_id, "error": _error_message(e)}

    if not job:
        logger.warning(f"Queue job {job_id} not found")
        return {"success": False, "job_id": job_id, "error": "Job not found"}

    if job.get("status") != QueueStatus.PROCESSING.value:
        logger.info(f"Skipping job {job_id} in status {job.get('status')}")
        return {"success": False, "job_id": job_id, "skipped": True, "status": job.get("status")}

    update_progress(2, 3, f"Publishing to {job.get('platform')}...")

    error = None
    result: dict[str, Any] = {}
    try:
        result = _publish(job)
    except Exception as e:
        error = _error_message(e)
        logger.warning(f"Publish failed for job {job_id}: {error}")

    update_progress(3, 3, "Saving outcome...")

    succeeded = error is None
    try:
        updated = PublishingQueueService.finish_processing(job, succeeded, error)
    except Exception as e:
        logger.error(f"Failed to record outcome of job {job_id} (published={succeeded}): {e}")
        return {"success": False, "job_id": job_id, "error": _error_message(e)}

    if updated is None:
        return {"success": False, "job_id": job_id, "skipped": True}

    title = job.get("title") or "Scheduled post"
    try:
        if succeeded:
            NotificationService.create_notification(
                job["user_id"],
                NotificationType.PUBLISH_STATUS.value,
                f"Published: {title}",
                body=result.get("message"),
                metadata={"job_id": job_id, "platform": job.get("platform"), "media_id": result.get("mediaId")},
            )
        else:
            NotificationService.create_notification(
                job["user_id"],
                NotificationType.FAILED_PUBLISH.value,
                f"Publish failed: {title}",
                body=error,
                metadata={"job_id": job_id, "platform": job.get("platform")},
            )
    except Exception as e:
        logger.error(f"Failed to create publish notification for job {job_id}: {e}")

    publish_job_status(job["user_id"], job_id, updated["status"], error)

    return {
        "success": succeeded,
        "job_id": job_id,
        "status": updated["status"],
        "media_id": result.get("mediaId"),
        "error": error,
    }


# =============================================================================
# Research
# =============================================================================

@shared_task(bind=True, name="workers.tasks.run_research_job")
def run_research_job(self, job_id: str) -> dict[str, Any]:
    """
    Run a pending research job: pending -> running -> completed | failed.

    The agent result, its sources and one usage credit are stored on
    completion; errors (including a missing agent configuration) are
    stored on the job.
    """
    from core.services.research_service import ResearchService

    logger.info(f"Running research job {job_id}")

    try:
        job = ResearchService.fetch_job_for_worker(job_id)
    except Exception as e:
        logger.error(f"Failed to load research job {job_id}: {e}")
        return {"success": False, "job_id": job_id, "error": _error_message(e)}

    if not job:
        logger.warning(f"Research job {job_id} not found")
        return {"success": False, "job_id": job_id, "error": "Job not found"}

    if job.get("status") != ResearchJobStatus.PENDING.value:
        logger.info(f"Skipping research job {job_id} in status {job.get('status')}")
        return {"success": False, "job_id": job_id, "skipped": True, "status": job.get("status")}

    update_progress(1, 2, "Calling research agent...")

    try:
        job = ResearchService.mark_running(job)
        result = ResearchService.execute(job)
    except Exception as e:
        error = _error_message(e)
        try:
            ResearchService.fail_job(job, error)
        except Exception as write_error:
            logger.error(f"Failed to record failure of research job {job_id}: {write_error}")
        return {"success": False, "job_id": job_id, "status": "failed", "error": error}

    update_progress(2, 2, "Saving results...")

    try:
        ResearchService.complete_job(job, result)
    except Exception as e:
        logger.error(f"Failed to store results of research job {job_id}: {e}")
        return {"success": False, "job_id": job_id, "error": _error_message(e)}

    return {"success": True, "job_id": job_id, "status": "completed"}
