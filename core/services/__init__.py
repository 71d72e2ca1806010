# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .publishing_queue_service import PublishingQueueService
from .dashboard_service import DashboardService
from .content_service import ContentService
from .file_library_service import FileLibraryService
from .storage_service import StorageService
from .notification_service import NotificationService
from .analytics_service import AnalyticsService
from .search_service import SearchService
from .google_service import GoogleService
from .instagram_service import InstagramService
from .billing_service import BillingService
from .account_service import AccountService
from .research_service import ResearchService
from .help_service import HelpService

__all__ = [
    "PublishingQueueService",
    "DashboardService",
    "ContentService",
    "FileLibraryService",
    "StorageService",
    "NotificationService",
    "AnalyticsService",
    "SearchService",
    "GoogleService",
    "InstagramService",
    "BillingService",
    "AccountService",
    "ResearchService",
    "HelpService",
]
