# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the creator dashboard's business logic:
# - models/: Pydantic schemas for requests, responses and status enums
# - services/: One service per area (queue, content, files, billing, ...)
#
# Code in this package should NOT import from FastAPI or Celery.
# This keeps the logic testable and reusable.
# =============================================================================
