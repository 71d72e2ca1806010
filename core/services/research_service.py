# =============================================================================
# core/services/research_service.py - Research Assistant
# =============================================================================
# Research and fact-check requests against the OpenClaw agent, either
# synchronously (the request waits for the agent) or as a queued job run by
# the research worker.
#
# Tables:
# - openclaw_jobs:      one row per request, pending -> running -> completed | failed
# - openclaw_sources:   citations returned by research requests
# - openclaw_usage:     per-user monthly counters and credits
# - openclaw_audit_log: submitted/completed/failed trail for queued jobs
# =============================================================================

import calendar
import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import (
    ExternalServiceError,
    IntegrationNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from app.websocket.broadcast import publish_research_job
from core.models.research import (
    CREDITS_PER_JOB,
    DEFAULT_CREDITS_LIMIT,
    USAGE_COUNTERS,
    ResearchJobStatus,
    ResearchJobType,
)
from lib.openclaw_client import OpenClawClient, OpenClawError
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, utc_now, utc_now_iso

logger = logging.getLogger(__name__)

JOBS_TABLE = "openclaw_jobs"
SOURCES_TABLE = "openclaw_sources"
USAGE_TABLE = "openclaw_usage"
AUDIT_TABLE = "openclaw_audit_log"

DEFAULT_SUMMARIES_LIMIT = 20
MAX_SUMMARIES_LIMIT = 50
DEFAULT_SOURCES_LIMIT = 50
MAX_SOURCES_LIMIT = 100
DEFAULT_AUDIT_LIMIT = 20
MAX_AUDIT_LIMIT = 50


def _current_period() -> tuple[str, str]:
    """First and last day of the current UTC calendar month, as YYYY-MM-DD."""
    today = utc_now().date()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1).isoformat(), today.replace(day=last_day).isoformat()


def _agent_error(e: OpenClawError) -> ExternalServiceError:
    return ExternalServiceError("OpenClaw", e.message, details=e.details)


class ResearchService:
    """Service for research jobs, sources and usage, scoped by user_id."""

    @staticmethod
    def _client() -> OpenClawClient:
        if not settings.openclaw_configured:
            raise IntegrationNotConfiguredError("OpenClaw")
        return OpenClawClient(
            settings.OPENCLAW_AGENT_API_URL,
            settings.OPENCLAW_AGENT_API_KEY,
            timeout=settings.OPENCLAW_TIMEOUT_SECONDS,
        )

    # -------------------------------------------------------------------------
    # Synchronous requests
    # -------------------------------------------------------------------------

    @staticmethod
    def run_research(
        user_id: UUID | str,
        topic: str,
        content_editor_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Research a topic and store the completed job with its sources.

        Returns:
            {"summary": str, "sources": [...], "job_id": str}

        Raises:
            InvalidRequestError: Blank topic
            IntegrationNotConfiguredError: Agent URL/key missing
            ExternalServiceError: The agent call failed
        """
        topic = (topic or "").strip()
        if not topic:
            raise InvalidRequestError("topic required for research")

        user_id_str = normalize_uuid(user_id)
        client = ResearchService._client()
        try:
            result = client.research(topic, user_id_str, content_editor_id)
        except OpenClawError as e:
            raise _agent_error(e)

        job = SupabaseClient.insert_row(JOBS_TABLE, {
            "user_id": user_id_str,
            "content_editor_id": content_editor_id,
            "action": ResearchJobType.RESEARCH.value,
            "payload": {"topic": topic},
            "status": ResearchJobStatus.COMPLETED.value,
            "result": {"summary": result["summary"], "sources": result["sources"]},
            "completed_at": utc_now_iso(),
        })
        ResearchService._save_sources(user_id_str, job["id"], content_editor_id, result["sources"])
        ResearchService.increment_usage(user_id_str, ResearchJobType.RESEARCH)

        logger.info(f"Research job {job['id']} completed for user {user_id} ({len(result['sources'])} sources)")
        return {"summary": result["summary"], "sources": result["sources"], "job_id": job["id"]}

    @staticmethod
    def fact_check(
        user_id: UUID | str,
        content: str,
        content_editor_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Check the claims in content and store the completed job.

        Only the content length is stored with the job, not the text.
        """
        if not content or not content.strip():
            raise InvalidRequestError("content required for fact-check")

        user_id_str = normalize_uuid(user_id)
        client = ResearchService._client()
        try:
            result = client.fact_check(content, user_id_str, content_editor_id)
        except OpenClawError as e:
            raise _agent_error(e)

        job = SupabaseClient.insert_row(JOBS_TABLE, {
            "user_id": user_id_str,
            "content_editor_id": content_editor_id,
            "action": ResearchJobType.FACT_CHECK.value,
            "payload": {"content_length": len(content)},
            "status": ResearchJobStatus.COMPLETED.value,
            "result": {"validated": result["validated"], "findings": result["findings"]},
            "completed_at": utc_now_iso(),
        })
        ResearchService.increment_usage(user_id_str, ResearchJobType.FACT_CHECK)

        logger.info(f"Fact-check job {job['id']} completed for user {user_id}")
        return {"validated": result["validated"], "findings": result["findings"], "job_id": job["id"]}

    # -------------------------------------------------------------------------
    # Queued jobs
    # -------------------------------------------------------------------------

    @staticmethod
    def submit_job(
        user_id: UUID | str,
        job_type: str,
        topic: str | None = None,
        content: str | None = None,
        content_editor_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Insert a pending job and its audit row. The caller enqueues the worker.

        Returns:
            {"job_id", "status", "created_at"}

        Raises:
            InvalidRequestError: Unknown job type, or the input it needs is missing
        """
        try:
            job_type = ResearchJobType(job_type)
        except ValueError:
            raise InvalidRequestError("job_type required: research|fact-check|generate")

        if job_type == ResearchJobType.RESEARCH and not (topic or "").strip():
            raise InvalidRequestError("topic required for research")
        if job_type == ResearchJobType.FACT_CHECK and not (content or "").strip():
            raise InvalidRequestError("content required for fact-check")

        user_id_str = normalize_uuid(user_id)
        job = SupabaseClient.insert_row(JOBS_TABLE, {
            "user_id": user_id_str,
            "content_editor_id": content_editor_id,
            "action": job_type.value,
            "payload": {"topic": topic, "content": content},
            "status": ResearchJobStatus.PENDING.value,
        })
        ResearchService._audit(user_id_str, job["id"], "job_submitted", {"job_type": job_type.value})

        logger.info(f"Submitted {job_type.value} job {job['id']} for user {user_id}")
        return {"job_id": job["id"], "status": job["status"], "created_at": job.get("created_at")}

    @staticmethod
    def get_job(job_id: str | UUID, user_id: UUID | str) -> dict[str, Any]:
        job = SupabaseClient.fetch_owned_row(JOBS_TABLE, job_id, user_id)
        if not job:
            raise ResourceNotFoundError("Research job", str(job_id))
        return job

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    @staticmethod
    def get_summaries(
        user_id: UUID | str,
        content_editor_id: str | UUID | None = None,
        limit: int = DEFAULT_SUMMARIES_LIMIT,
    ) -> list[dict[str, Any]]:
        """Summaries of completed research jobs, newest first."""
        client = SupabaseClient.get_client()
        query = (
            client.table(JOBS_TABLE)
            .select("id, result, created_at, content_editor_id")
            .eq("user_id", normalize_uuid(user_id))
            .eq("action", ResearchJobType.RESEARCH.value)
            .eq("status", ResearchJobStatus.COMPLETED.value)
        )
        if content_editor_id:
            query = query.eq("content_editor_id", normalize_uuid(content_editor_id))

        rows = (
            query
            .order("created_at", desc=True)
            .limit(max(1, min(limit, MAX_SUMMARIES_LIMIT)))
            .execute()
            .data
        ) or []
        return [
            {
                "job_id": row["id"],
                "summary": (row.get("result") or {}).get("summary") or "",
                "created_at": row.get("created_at"),
                "content_editor_id": row.get("content_editor_id"),
            }
            for row in rows
        ]

    @staticmethod
    def get_sources(
        user_id: UUID | str,
        content_editor_id: str | UUID | None = None,
        job_id: str | UUID | None = None,
        limit: int = DEFAULT_SOURCES_LIMIT,
    ) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        query = (
            client.table(SOURCES_TABLE)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
        )
        if content_editor_id:
            query = query.eq("content_editor_id", normalize_uuid(content_editor_id))
        if job_id:
            query = query.eq("job_id", normalize_uuid(job_id))

        return (
            query
            .order("created_at", desc=True)
            .limit(max(1, min(limit, MAX_SOURCES_LIMIT)))
            .execute()
            .data
        ) or []

    @staticmethod
    def get_audit(
        user_id: UUID | str,
        limit: int = DEFAULT_AUDIT_LIMIT,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        limit = max(1, min(limit, MAX_AUDIT_LIMIT))
        offset = max(0, offset)
        return (
            client.table(AUDIT_TABLE)
            .select("*")
            .eq("user_id", normalize_uuid(user_id))
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
            .data
        ) or []

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    @staticmethod
    def _fetch_usage(user_id: str, period_start: str) -> dict[str, Any] | None:
        client = SupabaseClient.get_client()
        rows = (
            client.table(USAGE_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("period_start", period_start)
            .limit(1)
            .execute()
            .data
        ) or []
        return rows[0] if rows else None

    @staticmethod
    def get_usage(user_id: UUID | str) -> dict[str, Any]:
        """Counters for the current calendar month; zeros when nothing ran yet."""
        period_start, period_end = _current_period()
        usage = ResearchService._fetch_usage(normalize_uuid(user_id), period_start) or {}
        return {
            "period_start": period_start,
            "period_end": period_end,
            "research_count": usage.get("research_count") or 0,
            "fact_check_count": usage.get("fact_check_count") or 0,
            "generate_count": usage.get("generate_count") or 0,
            "credits_used": usage.get("credits_used") or 0,
            "credits_limit": usage.get("credits_limit") or DEFAULT_CREDITS_LIMIT,
        }

    @staticmethod
    def increment_usage(user_id: UUID | str, job_type: ResearchJobType) -> None:
        """Count one finished job of job_type against this month's credits."""
        user_id_str = normalize_uuid(user_id)
        period_start, _ = _current_period()
        counter = USAGE_COUNTERS[job_type]
        client = SupabaseClient.get_client()

        usage = ResearchService._fetch_usage(user_id_str, period_start)
        if usage:
            (
                client.table(USAGE_TABLE)
                .update({
                    counter: (usage.get(counter) or 0) + 1,
                    "credits_used": (usage.get("credits_used") or 0) + CREDITS_PER_JOB,
                    "updated_at": utc_now_iso(),
                })
                .eq("id", usage["id"])
                .execute()
            )
        else:
            client.table(USAGE_TABLE).insert({
                "user_id": user_id_str,
                "period_start": period_start,
                "research_count": 0,
                "fact_check_count": 0,
                "generate_count": 0,
                counter: 1,
                "credits_used": CREDITS_PER_JOB,
                "credits_limit": DEFAULT_CREDITS_LIMIT,
            }).execute()

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _save_sources(
        user_id: str,
        job_id: str,
        content_editor_id: str | None,
        sources: list[dict[str, Any]],
    ) -> None:
        if not sources:
            return
        client = SupabaseClient.get_client()
        client.table(SOURCES_TABLE).insert([
            {
                "user_id": user_id,
                "content_editor_id": content_editor_id,
                "job_id": job_id,
                "url": source.get("url", ""),
                "title": source.get("title", ""),
                "snippet": source.get("snippet", ""),
            }
            for source in sources
        ]).execute()

    @staticmethod
    def _audit(user_id: str, job_id: str, action: str, metadata: dict[str, Any] | None = None) -> None:
        client = SupabaseClient.get_client()
        client.table(AUDIT_TABLE).insert({
            "user_id": user_id,
            "job_id": job_id,
            "action": action,
            "resource_type": "job",
            "resource_id": job_id,
            "metadata": metadata or {},
        }).execute()

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    @staticmethod
    def fetch_job_for_worker(job_id: str) -> dict[str, Any] | None:
        client = SupabaseClient.get_client()
        rows = client.table(JOBS_TABLE).select("*").eq("id", job_id).limit(1).execute().data or []
        return rows[0] if rows else None

    @staticmethod
    def _set_status(job: dict[str, Any], status: ResearchJobStatus, **fields: Any) -> dict[str, Any]:
        client = SupabaseClient.get_client()
        response = (
            client.table(JOBS_TABLE)
            .update({"status": status.value, "updated_at": utc_now_iso(), **fields})
            .eq("id", job["id"])
            .execute()
        )
        publish_research_job(job["user_id"], job["id"], status.value)
        rows = response.data or []
        return rows[0] if rows else {**job, "status": status.value, **fields}

    @staticmethod
    def mark_running(job: dict[str, Any]) -> dict[str, Any]:
        return ResearchService._set_status(job, ResearchJobStatus.RUNNING)

    @staticmethod
    def complete_job(job: dict[str, Any], result: dict[str, Any]) -> dict[str, Any]:
        """Store the result and sources, charge usage and audit the completion."""
        sources = result.pop("sources", None)
        stored = {**result, "sources": sources} if sources is not None else result
        updated = ResearchService._set_status(
            job, ResearchJobStatus.COMPLETED, result=stored, error=None, completed_at=utc_now_iso()
        )
        if sources:
            ResearchService._save_sources(job["user_id"], job["id"], job.get("content_editor_id"), sources)
        ResearchService.increment_usage(job["user_id"], ResearchJobType(job["action"]))
        ResearchService._audit(job["user_id"], job["id"], "job_completed", {"job_type": job["action"]})
        logger.info(f"Research job {job['id']} completed")
        return updated

    @staticmethod
    def fail_job(job: dict[str, Any], error: str) -> dict[str, Any]:
        updated = ResearchService._set_status(
            job, ResearchJobStatus.FAILED, error=error, completed_at=utc_now_iso()
        )
        ResearchService._audit(job["user_id"], job["id"], "job_failed", {"error": error})
        logger.warning(f"Research job {job['id']} failed: {error}")
        return updated

    @staticmethod
    def execute(job: dict[str, Any]) -> dict[str, Any]:
        """
        Call the agent for a queued job and return the result to store.

        Raises:
            IntegrationNotConfiguredError: Agent URL/key missing
            OpenClawError: The agent call failed
            InvalidRequestError: Unsupported job type or missing input
        """
        client = ResearchService._client()
        payload = job.get("payload") or {}
        job_type = ResearchJobType(job["action"])

        if job_type == ResearchJobType.RESEARCH:
            topic = (payload.get("topic") or "").strip()
            if not topic:
                raise InvalidRequestError("topic required for research")
            result = client.research(topic, job["user_id"], job.get("content_editor_id"))
            return {"summary": result["summary"], "sources": result["sources"]}

        if job_type == ResearchJobType.FACT_CHECK:
            content = payload.get("content") or ""
            if not content.strip():
                raise InvalidRequestError("content required for fact-check")
            result = client.fact_check(content, job["user_id"], job.get("content_editor_id"))
            return {"validated": result["validated"], "findings": result["findings"]}

        raise InvalidRequestError(f"Job type {job_type.value} is not supported")
