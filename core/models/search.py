# =============================================================================
# core/models/search.py - Global Search Schemas
# =============================================================================

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SearchType(str, Enum):
    LIBRARY = "library"
    CONTENT = "content"
    RESEARCH = "research"


DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50


class SearchRequest(BaseModel):
    """
    Search across files, content items and research notes.

    Example:
        {"query": "launch", "types": ["library", "content"], "limit": 10}
    """
    query: str = ""
    types: list[SearchType] = Field(default_factory=lambda: list(SearchType))
    limit: int = Field(default=DEFAULT_SEARCH_LIMIT, ge=1)


class SearchResult(BaseModel):
    id: str
    type: SearchType
    title: str
    description: str | None = None
    metadata: dict[str, Any] | None = None
    updated_at: str | None = None
