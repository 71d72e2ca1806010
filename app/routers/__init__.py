# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - dashboard.py: Dashboard aggregate and cache invalidation
# - publishing_queue.py: Scheduled publish jobs, retry, manual publish
# - content.py: Content editor items and versions
# - files.py: File library, uploads, CSV import/export
# - notifications.py: Notifications and notification preferences
# - analytics.py: Analytics series and CSV export
# - search.py: Global search
# - integrations.py: Google and Instagram connections
# - billing.py: Stripe checkout, portal, webhook, order history
# - research.py: Research assistant jobs
# - help.py: Help / contact requests
# - tasks.py: Background task status endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import dashboard
from . import publishing_queue
from . import content
from . import files
from . import notifications
from . import analytics
from . import search
from . import integrations
from . import billing
from . import research
from . import help
from . import tasks

__all__ = [
    "health",
    "dashboard",
    "publishing_queue",
    "content",
    "files",
    "notifications",
    "analytics",
    "search",
    "integrations",
    "billing",
    "research",
    "help",
    "tasks",
]
