# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Liveness, readiness and a basic status endpoint for load balancers.
#
# Readiness checks the three things every request or task depends on:
# Postgres (through the publishing queue table), Storage (bucket listing) and
# Redis (broker and WebSocket relay). Optional integrations are reported but
# never make the service unready.
# =============================================================================

import logging
from typing import Callable

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from lib.utils import utc_now_iso

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "1.0.0"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Result of each dependency check: "healthy" or "unhealthy: <reason>"."""
    database: str
    storage: str
    redis: str


class IntegrationsResponse(BaseModel):
    google: bool
    instagram: bool
    stripe: bool
    openclaw: bool


class ReadinessResponse(BaseModel):
    status: str
    checks: ChecksResponse
    integrations: IntegrationsResponse
    timestamp: str


class LivenessResponse(BaseModel):
    status: str
    timestamp: str


# =============================================================================
# Dependency Checks
# =============================================================================

def _run_check(name: str, check: Callable[[], object]) -> str:
    try:
        check()
        return "healthy"
    except Exception as e:
        logger.warning(f"Readiness check {name} failed: {e}")
        return f"unhealthy: {str(e)[:50]}"


def _check_database() -> None:
    from lib.supabase_client import SupabaseClient

    client = SupabaseClient.get_client()
    client.table("publishing_queue_logs").select("id").limit(1).execute()


def _check_storage() -> None:
    from lib.supabase_client import SupabaseClient

    SupabaseClient.get_client().storage.list_buckets()


def _check_redis() -> None:
    from app.websocket.broadcast import get_redis_client

    get_redis_client().ping()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Basic health status; does not touch any dependency."""
    return HealthResponse(
        status="healthy",
        timestamp=utc_now_iso(),
        environment=settings.ENVIRONMENT,
        version=VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    status is "ready" when database, storage and Redis all answer,
    "degraded" otherwise.
    """
    checks = ChecksResponse(
        database=_run_check("database", _check_database),
        storage=_run_check("storage", _check_storage),
        redis=_run_check("redis", _check_redis),
    )
    all_healthy = all(value == "healthy" for value in checks.model_dump().values())

    return ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        checks=checks,
        integrations=IntegrationsResponse(
            google=settings.google_configured,
            instagram=settings.instagram_configured,
            stripe=settings.stripe_configured,
            openclaw=settings.openclaw_configured,
        ),
        timestamp=utc_now_iso(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Used by Kubernetes/Docker for restart decisions.
    """
    return LivenessResponse(
        status="alive",
        timestamp=utc_now_iso(),
    )
