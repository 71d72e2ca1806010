# =============================================================================
# lib/openclaw_client.py - OpenClaw Research Agent Client
# =============================================================================
# HTTP client for the external research agent. Two endpoints:
# - POST {base}/research    {topic}   -> {summary | result, sources, job_id?}
# - POST {base}/fact-check  {content} -> {validated, findings, job_id?}
#
# Responses are normalized so callers always get the same keys.
# =============================================================================

import logging
from typing import Any

import httpx

from lib.utils import ApplicationError

logger = logging.getLogger(__name__)


class OpenClawError(ApplicationError):
    """The research agent could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(
            message,
            code="OPENCLAW_ERROR",
            suggestion="Try again later; research requests are not charged when they fail",
            details={"status_code": status_code} if status_code else None,
        )
        self.status_code = status_code


class OpenClawClient:
    """
    Client for one research agent deployment.

    Example:
        client = OpenClawClient(base_url, api_key)
        result = client.research("creator economy 2024", user_id)
        print(result["summary"], len(result["sources"]))
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = httpx.post(
                f"{self.base_url}{path}",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"OpenClaw request to {path} failed: {e}")
            raise OpenClawError(f"Research agent unreachable: {e}")

        if response.status_code >= 400:
            logger.error(f"OpenClaw {path} returned {response.status_code}")
            raise OpenClawError(
                f"Research agent returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            raise OpenClawError("Research agent returned invalid JSON")
        return data if isinstance(data, dict) else {}

    def research(self, topic: str, user_id: str, content_editor_id: str | None = None) -> dict[str, Any]:
        """
        Research a topic.

        Returns:
            Dict with summary (str), sources (list of {url, title, snippet})
            and job_id (agent-side id, may be None)
        """
        data = self._post("/research", {
            "topic": topic,
            "user_id": user_id,
            "content_editor_id": content_editor_id,
        })
        return {
            "summary": data.get("summary") or data.get("result") or "",
            "sources": [
                {
                    "url": source.get("url", ""),
                    "title": source.get("title", ""),
                    "snippet": source.get("snippet", ""),
                }
                for source in data.get("sources") or []
                if isinstance(source, dict)
            ],
            "job_id": data.get("job_id"),
        }

    def fact_check(self, content: str, user_id: str, content_editor_id: str | None = None) -> dict[str, Any]:
        """
        Check the factual claims in a piece of content.

        Returns:
            Dict with validated (bool), findings (list of {claim, status,
            source?, note?}) and job_id
        """
        data = self._post("/fact-check", {
            "content": content,
            "user_id": user_id,
            "content_editor_id": content_editor_id,
        })
        return {
            "validated": bool(data.get("validated", True)),
            "findings": data.get("findings") or [],
            "job_id": data.get("job_id"),
        }
