# =============================================================================
# app/routers/research.py - Research Assistant Endpoints
# =============================================================================
# Synchronous research/fact-check calls, queued jobs and their history.
# All endpoints require authentication.
# =============================================================================

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from app.auth import AuthUser, get_current_user
from app.exceptions import TaskQueueUnavailableError
from core.models.research import FactCheckRequest, ResearchRequest, SubmitJobRequest
from core.services.research_service import (
    DEFAULT_AUDIT_LIMIT,
    DEFAULT_SOURCES_LIMIT,
    DEFAULT_SUMMARIES_LIMIT,
    ResearchService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/run")
async def run_research(
    request: ResearchRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Research a topic now; returns the summary and its sources."""
    return ResearchService.run_research(user.id, request.topic, request.content_editor_id)


@router.post("/fact-check")
async def fact_check(
    request: FactCheckRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Check the claims in a piece of content now."""
    return ResearchService.fact_check(user.id, request.content, request.content_editor_id)


@router.post("/jobs")
async def submit_job(
    request: SubmitJobRequest,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Queue a research job for the worker.

    Follow progress with GET /research/jobs/{job_id} or the
    research_job_updated WebSocket event.
    """
    submitted = ResearchService.submit_job(
        user.id,
        request.job_type.value,
        topic=request.topic,
        content=request.content,
        content_editor_id=request.content_editor_id,
    )

    try:
        from workers.tasks import run_research_job

        run_research_job.delay(submitted["job_id"])
    except Exception as e:
        logger.error(f"Failed to enqueue research job {submitted['job_id']}: {e}")
        job = ResearchService.get_job(submitted["job_id"], user.id)
        ResearchService.fail_job(job, "Task queue unavailable")
        raise TaskQueueUnavailableError(str(e))

    return submitted


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: Annotated[UUID, Path(description="Research job UUID")],
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ResearchService.get_job(job_id, user.id)


@router.get("/summaries")
async def get_summaries(
    user: AuthUser = Depends(get_current_user),
    content_editor_id: UUID | None = None,
    limit: Annotated[int, Query(ge=1)] = DEFAULT_SUMMARIES_LIMIT,
) -> dict[str, Any]:
    return {"summaries": ResearchService.get_summaries(user.id, content_editor_id, limit)}


@router.get("/sources")
async def get_sources(
    user: AuthUser = Depends(get_current_user),
    content_editor_id: UUID | None = None,
    job_id: UUID | None = None,
    limit: Annotated[int, Query(ge=1)] = DEFAULT_SOURCES_LIMIT,
) -> dict[str, Any]:
    return {"sources": ResearchService.get_sources(user.id, content_editor_id, job_id, limit)}


@router.get("/usage")
async def get_usage(user: AuthUser = Depends(get_current_user)) -> dict[str, Any]:
    """This month's research counters and credits."""
    return ResearchService.get_usage(user.id)


@router.get("/audit")
async def get_audit(
    user: AuthUser = Depends(get_current_user),
    limit: Annotated[int, Query(ge=1)] = DEFAULT_AUDIT_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict[str, Any]:
    return {"audit": ResearchService.get_audit(user.id, limit, offset)}
