# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# publishing queue jobs and research jobs.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (publish, research)
# - config.py: Worker-specific settings
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker -Q default,publishing,research --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import publish_queue_job
#   result = publish_queue_job.delay(job_id)
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
