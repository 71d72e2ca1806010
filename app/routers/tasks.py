# =============================================================================
# app/routers/tasks.py - Task Status Endpoints
# =============================================================================
# Celery task state for manual publishes and queued research jobs.
# The task_id is the one returned by POST /publishing-queue/{id}/publish.
# Research jobs are usually tracked by job id at /research/jobs/{id} instead.
# =============================================================================

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter()

# Celery state -> (progress, message)
STATE_MESSAGES: dict[str, tuple[int, str]] = {
    "PENDING": (0, "Waiting in queue..."),
    "STARTED": (0, "Starting..."),
    "RETRY": (0, "Retrying..."),
    "SUCCESS": (100, "Complete"),
    "FAILURE": (0, "Failed"),
    "REVOKED": (0, "Cancelled"),
}


# =============================================================================
# Response Models
# =============================================================================

class TaskStatusResponse(BaseModel):
    """Response model for task status."""
    task_id: str
    status: str
    progress: int | None = None
    message: str | None = None
    result: Any = None
    error: str | None = None


def _get_result(task_id: str):
    from workers.celery_app import celery_app

    return celery_app.AsyncResult(task_id)


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")]
):
    """
    Get the status of a background task.

    - PENDING: waiting in queue (also returned for unknown ids)
    - STARTED: picked up by a worker
    - PROGRESS: running; progress and message come from the task meta
    - SUCCESS: finished; result holds the task return value
    - FAILURE: error holds the exception text
    """
    try:
        result = _get_result(task_id)
        status = result.status
        response = TaskStatusResponse(task_id=task_id, status=status)

        if status == "PROGRESS":
            info = result.info or {}
            response.progress = info.get("percent", 0)
            response.message = info.get("message", "Processing...")
        else:
            response.progress, response.message = STATE_MESSAGES.get(status, (None, None))

        if status == "SUCCESS":
            response.result = result.result
        elif status == "FAILURE":
            response.error = str(result.result) if result.result else "Unknown error"

        return response

    except Exception as e:
        logger.error(f"Error getting task status: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get task status: {e}")


@router.delete("/{task_id}")
async def cancel_task(
    task_id: Annotated[str, Path(description="Celery task ID")]
):
    """
    Revoke a task that hasn't finished.

    This only stops the Celery task; use POST /publishing-queue/{id}/cancel
    to cancel a queued publish.
    """
    try:
        result = _get_result(task_id)

        if result.status in ("SUCCESS", "FAILURE"):
            return {
                "task_id": task_id,
                "message": f"Task already {result.status.lower()}, cannot cancel",
                "cancelled": False,
            }

        result.revoke(terminate=True)
        return {"task_id": task_id, "message": "Task cancelled", "cancelled": True}

    except Exception as e:
        logger.error(f"Error cancelling task: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to cancel task: {e}")
