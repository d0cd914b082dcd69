"""
Job search backend client.

Thin async wrapper around ``POST /jobs/search``. Transient failures
(network errors, HTTP 429 and 5xx) are retried with exponential backoff;
other 4xx responses fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import BaseModel, Field

from job_voice_agent.config import get_settings

logger = logging.getLogger(__name__)

SEARCH_PATH = "/jobs/search"


class JobSearchPage(BaseModel):
    """One page of raw backend results."""

    jobs: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    has_more: bool | None = None


class JobSearchAPIError(Exception):
    """Raised when the job search backend cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class JobSearchBackend(ABC):
    """Anything that can return a page of jobs for a search payload."""

    @abstractmethod
    async def search(self, payload: dict[str, Any]) -> JobSearchPage:
        """
        Run a job search.

        Raises:
            JobSearchAPIError: If the search fails.
        """
        ...


def _is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


class JobSearchClient(JobSearchBackend):
    """httpx-based client for the job search backend."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_s: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.jobs_api_base_url).rstrip("/")
        self._token = settings.jobs_api_token if token is None else token
        self._timeout = timeout or settings.jobs_api_timeout
        self._max_retries = settings.jobs_api_max_retries if max_retries is None else max_retries
        self._backoff_s = backoff_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _post_once(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(SEARCH_PATH, json=payload)
        except httpx.HTTPError as e:
            raise JobSearchAPIError(f"Network error: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise JobSearchAPIError(
                f"Job search failed with HTTP {response.status_code}",
                status_code=response.status_code,
                retryable=_is_retryable_status(response.status_code),
            )

        try:
            return response.json()
        except ValueError as e:
            raise JobSearchAPIError("Job search returned invalid JSON") from e

    async def search(self, payload: dict[str, Any]) -> JobSearchPage:
        attempt = 0
        while True:
            try:
                body = await self._post_once(payload)
                break
            except JobSearchAPIError as e:
                if not e.retryable or attempt >= self._max_retries:
                    logger.warning(f"[JOBS] search failed after {attempt + 1} attempt(s): {e}")
                    raise
                delay = self._backoff_s * (2**attempt)
                logger.info(f"[JOBS] retrying search in {delay:.2f}s ({e})")
                await asyncio.sleep(delay)
                attempt += 1

        return _page_from_body(body)


def _page_from_body(body: Any) -> JobSearchPage:
    """Validate the response envelope; any shape problem is a JobSearchAPIError."""
    if not isinstance(body, dict):
        raise JobSearchAPIError(f"Job search returned a {type(body).__name__} body, expected an object")
    if not body.get("success", False):
        raise JobSearchAPIError(str(body.get("error") or "Job search was not successful"))

    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise JobSearchAPIError("Job search response has malformed data")
    raw_jobs = data.get("jobs") or []
    if not isinstance(raw_jobs, list):
        raise JobSearchAPIError("Job search response has malformed jobs list")
    jobs = [j for j in raw_jobs if isinstance(j, dict)]

    try:
        return JobSearchPage(
            jobs=jobs,
            total=int(data.get("total") or len(jobs)),
            has_more=data.get("hasMore"),
        )
    except (TypeError, ValueError) as e:
        raise JobSearchAPIError(f"Job search response is malformed: {e}") from e
