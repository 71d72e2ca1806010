# =============================================================================
# lib/google_api.py - Google OAuth, Calendar and Gmail Client
# =============================================================================
# Thin httpx wrappers around the Google endpoints the dashboard uses.
# Every function raises GoogleAPIError on a non-2xx response so callers can
# decide whether a failure degrades (dashboard) or surfaces (integration
# endpoints).
#
# Usage:
#   from lib.google_api import list_calendar_events
#   events = list_calendar_events(access_token, time_min, time_max)
# =============================================================================

import logging
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

import httpx

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
GMAIL_THREADS_URL = "https://gmail.googleapis.com/gmail/v1/users/me/threads"

SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events.readonly",
]

REQUEST_TIMEOUT = 10.0
SNIPPET_LENGTH = 120


class GoogleAPIError(ApplicationError):
    """A Google endpoint answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(
            message,
            code="GOOGLE_API_ERROR",
            suggestion="Reconnect Google from the Integrations page if this persists",
            details={"status_code": status_code, "body": (body or "")[:500]},
        )
        self.status_code = status_code


def _check(response: httpx.Response, what: str) -> dict[str, Any]:
    if response.status_code >= 400:
        raise GoogleAPIError(f"{what} failed", response.status_code, response.text)
    return response.json()


# =============================================================================
# OAuth
# =============================================================================

def build_auth_url(client_id: str, redirect_uri: str, state: str) -> str:
    """Consent-screen URL requesting offline access to Gmail and Calendar."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str, client_id: str, client_secret: str, redirect_uri: str) -> dict[str, Any]:
    """
    Exchange an authorization code for tokens.

    Returns:
        Token dict with access_token, refresh_token (first consent only),
        expires_in

    Raises:
        GoogleAPIError: If Google rejects the code
    """
    response = httpx.post(
        TOKEN_URL,
        data={
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        timeout=REQUEST_TIMEOUT,
    )
    return _check(response, "Token exchange")


def refresh_access_token(refresh_token: str, client_id: str, client_secret: str) -> dict[str, Any]:
    """Trade a refresh token for a new access token."""
    response = httpx.post(
        TOKEN_URL,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        timeout=REQUEST_TIMEOUT,
    )
    return _check(response, "Token refresh")


# =============================================================================
# Calendar
# =============================================================================

def list_calendar_events(
    access_token: str,
    time_min: datetime,
    time_max: datetime,
    max_results: int = 10,
) -> list[dict[str, str]]:
    """
    Upcoming events on the primary calendar, soonest first.

    Returns:
        List of {id, summary, start, end}; all-day events carry a date
        instead of a datetime
    """
    response = httpx.get(
        CALENDAR_EVENTS_URL,
        params={
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": max_results,
        },
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    data = _check(response, "Calendar events")

    events = []
    for item in data.get("items", []):
        start = item.get("start") or {}
        end = item.get("end") or {}
        events.append({
            "id": item.get("id", ""),
            "summary": item.get("summary") or "No title",
            "start": start.get("dateTime") or start.get("date") or "",
            "end": end.get("dateTime") or end.get("date") or "",
        })
    return events


# =============================================================================
# Gmail
# =============================================================================

def list_gmail_threads(access_token: str, query: str, max_results: int) -> list[str]:
    """Thread ids matching a Gmail search query."""
    response = httpx.get(
        GMAIL_THREADS_URL,
        params={"q": query, "maxResults": max_results},
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    data = _check(response, "Gmail threads")
    return [thread["id"] for thread in data.get("threads", []) if thread.get("id")]


def get_thread_snippet(access_token: str, thread_id: str) -> str | None:
    """
    Preview text of a thread's first message, truncated.

    Returns None when the thread can't be read.
    """
    response = httpx.get(
        f"{GMAIL_THREADS_URL}/{thread_id}",
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code >= 400:
        logger.debug(f"Skipping unreadable Gmail thread {thread_id}: {response.status_code}")
        return None
    messages = response.json().get("messages") or []
    snippet = (messages[0].get("snippet") if messages else None) or "No preview"
    return snippet[:SNIPPET_LENGTH]
