# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - publishing.py: Publishing queue jobs and their status flow
# - content.py: Content editor items
# - file_library.py: File library metadata, import/export requests
# - notification.py: Notifications and preference flags
# - analytics.py: Analytics overview response shapes
# - billing.py: Plans, checkout requests, payment ledger
# - research.py: Research assistant jobs
# - search.py: Global search request and result
# - help.py: Help page contact requests
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Publishing Queue
# -----------------------------------------------------------------------------
from .publishing import (
    BulkRetryRequest,
    BulkRetryResponse,
    JobActionResponse,
    QueueJob,
    QueueJobList,
    QueueStatus,
    ScheduleJobRequest,
    ScheduleJobResponse,
)

# -----------------------------------------------------------------------------
# Content & Files
# -----------------------------------------------------------------------------
from .content import (
    BulkStatusRequest,
    ContentCreate,
    ContentStatus,
    ContentUpdate,
)
from .file_library import (
    BulkIdsRequest,
    BulkTagRequest,
    ExportRequest,
    FileCreate,
    FileStatus,
    FileUpdate,
    ImportRequest,
    ImportResponse,
)

# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------
from .notification import (
    MarkReadRequest,
    NotificationPreferencesUpdate,
    NotificationType,
    SettingsPreferencesUpdate,
)

# -----------------------------------------------------------------------------
# Analytics, Billing, Research, Search, Help
# -----------------------------------------------------------------------------
from .analytics import (
    AnalyticsOverview,
    AnalyticsResponse,
    ChartPoint,
    MetricType,
    TopPost,
)
from .billing import (
    CheckoutRequest,
    PaymentCreate,
    PaymentStatus,
    PaymentUpdate,
    PlanId,
    PortalRequest,
)
from .research import (
    FactCheckRequest,
    ResearchJobStatus,
    ResearchJobType,
    ResearchRequest,
    SubmitJobRequest,
)
from .search import (
    SearchRequest,
    SearchResult,
    SearchType,
)
from .help import HelpRequestCreate

__all__ = [
    # Publishing
    "BulkRetryRequest",
    "BulkRetryResponse",
    "JobActionResponse",
    "QueueJob",
    "QueueJobList",
    "QueueStatus",
    "ScheduleJobRequest",
    "ScheduleJobResponse",
    # Content & Files
    "BulkStatusRequest",
    "ContentCreate",
    "ContentStatus",
    "ContentUpdate",
    "BulkIdsRequest",
    "BulkTagRequest",
    "ExportRequest",
    "FileCreate",
    "FileStatus",
    "FileUpdate",
    "ImportRequest",
    "ImportResponse",
    # Notifications
    "MarkReadRequest",
    "NotificationPreferencesUpdate",
    "NotificationType",
    "SettingsPreferencesUpdate",
    # Analytics
    "AnalyticsOverview",
    "AnalyticsResponse",
    "ChartPoint",
    "MetricType",
    "TopPost",
    # Billing
    "CheckoutRequest",
    "PaymentCreate",
    "PaymentStatus",
    "PaymentUpdate",
    "PlanId",
    "PortalRequest",
    # Research
    "FactCheckRequest",
    "ResearchJobStatus",
    "ResearchJobType",
    "ResearchRequest",
    "SubmitJobRequest",
    # Search
    "SearchRequest",
    "SearchResult",
    "SearchType",
    # Help
    "HelpRequestCreate",
]
