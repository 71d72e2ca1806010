# =============================================================================
# core/models/research.py - Research Assistant Schemas
# =============================================================================
# Requests and enums for the OpenClaw research agent: synchronous research
# and fact-check calls, plus queued jobs tracked in openclaw_jobs.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class ResearchJobType(str, Enum):
    RESEARCH = "research"
    FACT_CHECK = "fact-check"
    GENERATE = "generate"


class ResearchJobStatus(str, Enum):
    """pending -> running -> completed | failed"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Credits charged per finished job
CREDITS_PER_JOB = 1
DEFAULT_CREDITS_LIMIT = 100

# openclaw_usage counter column for each job type
USAGE_COUNTERS = {
    ResearchJobType.RESEARCH: "research_count",
    ResearchJobType.FACT_CHECK: "fact_check_count",
    ResearchJobType.GENERATE: "generate_count",
}


class ResearchRequest(BaseModel):
    topic: str = Field(..., min_length=1, description="What to research")
    content_editor_id: str | None = None


class FactCheckRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Text whose claims should be checked")
    content_editor_id: str | None = None


class SubmitJobRequest(BaseModel):
    """
    Queue a research job for the worker.

    Example:
        {"job_type": "research", "topic": "short-form video trends 2024"}
    """
    job_type: ResearchJobType
    topic: str | None = None
    content: str | None = None
    content_editor_id: str | None = None
