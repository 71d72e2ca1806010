# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# This package contains the FastAPI web application:
# - main.py: App entry point, lifespan tasks, error handlers
# - config.py: Environment variable loading and settings
# - exceptions.py: API error types and their JSON handlers
# - auth/: Supabase JWT verification and account endpoints
# - routers/: API endpoint definitions organized by feature
# - websocket/: Per-user real-time event stream
#
# The app layer is thin - it handles HTTP concerns and delegates
# business logic to the core/ package.
# =============================================================================
