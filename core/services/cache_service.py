# =============================================================================
# core/services/cache_service.py - Response Cache Registry
# =============================================================================
# Owns the process-wide TTL caches and the rules for invalidating them.
#
# Scopes:
# - dashboard: one entry per user, key "dashboard:<user_id>"
# - search:    one entry per user+query, key "search:<user_id>:<query hash>"
#
# Services call invalidate_user() after writes that change what a cached
# payload would show (content items, files, queue jobs, research rows).
# =============================================================================

import logging

from app.config import settings
from lib.ttl_cache import TTLCache
from lib.utils import normalize_uuid

logger = logging.getLogger(__name__)

dashboard_cache = TTLCache(ttl_seconds=settings.DASHBOARD_CACHE_TTL)
search_cache = TTLCache(ttl_seconds=settings.SEARCH_CACHE_TTL)

CACHE_SCOPES: dict[str, TTLCache] = {
    "dashboard": dashboard_cache,
    "search": search_cache,
}


def dashboard_key(user_id) -> str:
    return f"dashboard:{normalize_uuid(user_id)}"


def search_key_prefix(user_id) -> str:
    return f"search:{normalize_uuid(user_id)}:"


def invalidate_scope(scope: str, user_id) -> int:
    """
    Drop the user's entries in one scope.

    Returns:
        Number of entries removed

    Raises:
        KeyError: If scope is not a known cache scope
    """
    cache = CACHE_SCOPES[scope]
    if scope == "dashboard":
        removed = 1 if cache.delete(dashboard_key(user_id)) else 0
    else:
        removed = cache.delete_prefix(search_key_prefix(user_id))
    logger.debug(f"Invalidated {removed} {scope} cache entries for user {user_id}")
    return removed


def invalidate_user(user_id) -> None:
    """Drop every cached response belonging to the user."""
    for scope in CACHE_SCOPES:
        invalidate_scope(scope, user_id)


def purge_expired() -> int:
    """Sweep expired entries from every cache. Returns the number removed."""
    return sum(cache.purge_expired() for cache in CACHE_SCOPES.values())
