# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - ttl_cache.py: In-process time-to-live cache for response caching
# - instagram_graph.py: Instagram Graph API client and caption builder
# - google_api.py: Google OAuth, Calendar and Gmail client
# - openclaw_client.py: Research agent API client
# - utils.py: Shared utilities (errors, UUIDs, time, query escaping)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.ttl_cache import CacheEntry, TTLCache
from lib.utils import ApplicationError, normalize_uuid

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Cache
    "CacheEntry",
    "TTLCache",
    # Utils
    "ApplicationError",
    "normalize_uuid",
]
