# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Creator Ops Hub API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.websocket import websocket_manager, WEBSOCKET_CHANNEL
from app.exceptions import (
    CreatorOpsException,
    creator_ops_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    analytics,
    billing,
    content,
    dashboard,
    files,
    health,
    help,
    integrations,
    notifications,
    publishing_queue,
    research,
    search,
    tasks,
)
from app.auth import routes as auth_routes
from app.websocket import routes as websocket_routes
from core.services import cache_service
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Background tasks started in lifespan
_redis_listener_task = None
_cache_gc_task = None
_shutdown_event = None


async def redis_pubsub_listener():
    """
    Background task that listens to Redis pub/sub and broadcasts to WebSockets.

    Celery workers publish {"user_id", "type", "data"} to WEBSOCKET_CHANNEL;
    each message is forwarded to that user's open sockets without user_id.
    """
    import redis.asyncio as aioredis

    logger.info("Starting Redis pub/sub listener for WebSocket broadcasts")

    redis_client = None
    pubsub = None
    try:
        redis_client = aioredis.from_url(settings.REDIS_URL)
        pubsub = redis_client.pubsub()
        await pubsub.subscribe(WEBSOCKET_CHANNEL)

        async for message in pubsub.listen():
            if _shutdown_event and _shutdown_event.is_set():
                break

            if message["type"] == "message":
                try:
                    data = json.loads(message["data"])
                    user_id = data.pop("user_id", None)

                    if user_id:
                        await websocket_manager.broadcast(user_id, data)
                        logger.debug(f"Broadcast {data.get('type')} to user {user_id}")

                except json.JSONDecodeError as e:
                    logger.warning(f"Invalid JSON in Redis message: {e}")
                except Exception as e:
                    logger.error(f"Error processing Redis message: {e}")

    except asyncio.CancelledError:
        logger.info("Redis pub/sub listener cancelled")
    except Exception as e:
        logger.error(f"Redis pub/sub listener error: {e}")
    finally:
        try:
            if pubsub is not None:
                await pubsub.unsubscribe(WEBSOCKET_CHANNEL)
            if redis_client is not None:
                await redis_client.close()
        except Exception as e:
            logger.debug(f"Redis listener cleanup failed: {e}")


async def cache_gc_loop():
    """Drop expired dashboard and search cache entries every CACHE_GC_INTERVAL seconds."""
    try:
        while not (_shutdown_event and _shutdown_event.is_set()):
            await asyncio.sleep(settings.CACHE_GC_INTERVAL)
            removed = cache_service.purge_expired()
            if removed:
                logger.debug(f"Cache GC removed {removed} expired entries")
    except asyncio.CancelledError:
        logger.info("Cache GC loop cancelled")


async def _stop(task: asyncio.Task | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: start the Redis -> WebSocket bridge and the cache GC loop
    - Shutdown: stop both
    """
    global _redis_listener_task, _cache_gc_task, _shutdown_event

    # Startup
    logger.info(f"Starting Creator Ops Hub API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    _shutdown_event = asyncio.Event()
    _redis_listener_task = asyncio.create_task(redis_pubsub_listener())
    _cache_gc_task = asyncio.create_task(cache_gc_loop())

    yield

    # Shutdown
    logger.info("Shutting down Creator Ops Hub API")

    if _shutdown_event:
        _shutdown_event.set()
    await _stop(_redis_listener_task)
    await _stop(_cache_gc_task)


# Create FastAPI application
app = FastAPI(
    title="Creator Ops Hub API",
    description="""
## Creator Ops Hub

Backend for the creator dashboard: one place to plan, publish and measure
content across platforms.

### Areas

| Area | What it does |
|------|--------------|
| **Dashboard** | Calendar, inbox, scheduled posts, assets and research at a glance (cached) |
| **Publishing Queue** | Schedule posts, retry failures, publish now |
| **Content** | Editor items with status workflow and version history |
| **Files** | File library in Supabase Storage, CSV import/export |
| **Analytics** | Engagement series per channel, CSV export |
| **Integrations** | Google Calendar/Gmail and Instagram Graph |
| **Billing** | Stripe subscriptions, portal and order history |
| **Research** | Research and fact-check jobs via OpenClaw |

### Authentication

Every endpoint except health, auth login/reset and the Stripe webhook needs
a Supabase access token:

```bash
curl http://localhost:8000/api/v1/dashboard \\
  -H "Authorization: Bearer <access_token>"
```

Real-time updates: `ws://localhost:8000/ws/updates?token=<access_token>`
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Login, password reset and token checks"},
        {"name": "Dashboard", "description": "Dashboard aggregate and cache control"},
        {"name": "Publishing Queue", "description": "Scheduled publishing jobs"},
        {"name": "Content", "description": "Content editor items and versions"},
        {"name": "Files", "description": "File library and CSV import/export"},
        {"name": "Notifications", "description": "Notifications and preferences"},
        {"name": "Settings", "description": "Account settings"},
        {"name": "Analytics", "description": "Engagement analytics and export"},
        {"name": "Search", "description": "Global search"},
        {"name": "Integrations", "description": "Google and Instagram connections"},
        {"name": "Billing", "description": "Stripe subscriptions and payments"},
        {"name": "Research", "description": "Research assistant jobs"},
        {"name": "Help", "description": "Help and contact requests"},
        {"name": "Tasks", "description": "Track async task progress"},
        {"name": "WebSocket", "description": "Real-time user updates"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "X-Cache-Status",
        "X-Cache-Hit-At",
        "X-Cache-Expires-At",
        "X-Request-Id",
        "X-Response-Time-Ms",
    ],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(CreatorOpsException)
async def handle_creator_ops_exception(request: Request, exc: CreatorOpsException):
    """Handle custom Creator Ops exceptions."""
    return await creator_ops_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    return await validation_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_supabase_exception(request: Request, exc: SupabaseClientError):
    """Database failures that weren't mapped to a domain error."""
    logger.error(f"Supabase error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": exc.message,
            "code": exc.code,
            "suggestion": exc.suggestion,
        }
    )


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints
app.include_router(
    auth_routes.router,
    prefix="/api/v1/auth",
    tags=["Auth"]
)

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Dashboard aggregate and cache invalidation
app.include_router(
    dashboard.router,
    prefix="/api/v1",
    tags=["Dashboard"]
)

# Publishing queue
app.include_router(
    publishing_queue.router,
    prefix="/api/v1/publishing-queue",
    tags=["Publishing Queue"]
)

# Content editor
app.include_router(
    content.router,
    prefix="/api/v1/content",
    tags=["Content"]
)

# File library
app.include_router(
    files.router,
    prefix="/api/v1/files",
    tags=["Files"]
)

# Notifications
app.include_router(
    notifications.router,
    prefix="/api/v1/notifications",
    tags=["Notifications"]
)

# Settings (notification preferences)
app.include_router(
    notifications.settings_router,
    prefix="/api/v1/settings",
    tags=["Settings"]
)

# Analytics
app.include_router(
    analytics.router,
    prefix="/api/v1/analytics",
    tags=["Analytics"]
)

# Global search
app.include_router(
    search.router,
    prefix="/api/v1/search",
    tags=["Search"]
)

# Google / Instagram integrations
app.include_router(
    integrations.router,
    prefix="/api/v1/integrations",
    tags=["Integrations"]
)

# Billing
app.include_router(
    billing.router,
    prefix="/api/v1/billing",
    tags=["Billing"]
)

# Research assistant
app.include_router(
    research.router,
    prefix="/api/v1/research",
    tags=["Research"]
)

# Help / contact
app.include_router(
    help.router,
    prefix="/api/v1/help",
    tags=["Help"]
)

# Task status endpoints
app.include_router(
    tasks.router,
    prefix="/api/v1/tasks",
    tags=["Tasks"]
)

# WebSocket endpoints (Real-time updates)
app.include_router(
    websocket_routes.router,
    tags=["WebSocket"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Creator Ops Hub API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
