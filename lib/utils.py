# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Args:
        value: UUID as string or UUID object

    Returns:
        String representation of the UUID

    Example:
        user_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        user_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


def valid_uuids(values: list[str | UUID]) -> list[str]:
    """
    Canonical string form of every value that parses as a UUID.

    Values that aren't UUIDs are dropped, so the result can go straight into
    an `id` filter on a uuid column.
    """
    parsed = []
    for value in values:
        if isinstance(value, UUID):
            parsed.append(str(value))
            continue
        try:
            parsed.append(str(UUID(str(value))))
        except ValueError:
            continue
    return parsed


# =============================================================================
# Time Utilities
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string, the format stored in timestamptz columns."""
    return utc_now().isoformat()


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a Postgres/ISO timestamp into an aware datetime.

    Accepts the trailing "Z" PostgREST sometimes returns. Naive values are
    treated as UTC. Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_time_ago(value: str | datetime | None, now: datetime | None = None) -> str:
    """
    Render a timestamp as a short relative time.

    Example:
        format_time_ago("2024-01-15T10:00:00Z", now=...)  # "5m ago", "3h ago", "2d ago"
    """
    moment = parse_timestamp(value)
    if moment is None:
        return ""
    now = now or utc_now()
    minutes = int((now - moment).total_seconds() // 60)
    if minutes < 60:
        return f"{max(minutes, 0)}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


# =============================================================================
# Query Utilities
# =============================================================================

def escape_ilike(term: str) -> str:
    """
    Escape a user search term for use inside a PostgREST ilike pattern.

    LIKE wildcards (%, _) and the escape character are escaped. Commas and
    parentheses are replaced with spaces because they delimit conditions
    inside an or=(...) filter.
    """
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    for delimiter in (",", "(", ")"):
        escaped = escaped.replace(delimiter, " ")
    return escaped.strip()


def ilike_any(columns: list[str], term: str) -> str:
    """
    Build an or=(...) filter matching the term in any of the columns.

    Example:
        ilike_any(["title", "description"], "launch")
        # "title.ilike.%launch%,description.ilike.%launch%"
    """
    pattern = f"%{escape_ilike(term)}%"
    return ",".join(f"{column}.ilike.{pattern}" for column in columns)


# =============================================================================
# OAuth State
# =============================================================================

def encode_state(payload: dict[str, Any]) -> str:
    """Encode an OAuth state payload as base64 JSON."""
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_state(state: str) -> dict[str, Any]:
    """
    Decode an OAuth state produced by encode_state.

    Raises:
        ApplicationError: If the state isn't valid base64 JSON object
    """
    try:
        # Accept the URL-safe alphabet too; some redirects rewrite + and /
        normalized = state.replace("-", "+").replace("_", "/").replace(" ", "+")
        padded = normalized + "=" * (-len(normalized) % 4)
        payload = json.loads(base64.b64decode(padded.encode("ascii"), validate=True))
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise ApplicationError("Invalid state", code="INVALID_STATE", details={"error": str(e)})
    if not isinstance(payload, dict):
        raise ApplicationError("Invalid state", code="INVALID_STATE")
    return payload


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class GraphAPIError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="GRAPH_API_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "details": self.details,
        }
