"""HTTP client for GitHub's REST search and contents endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .clock import SystemClock
from .config import GitHubSettings
from .errors import PlatformUnreachableError
from .rate_limiter import RateLimitGovernor

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ApiResponse:
    """Status code of a call plus its JSON object body; ``payload`` is ``None`` when there is none."""

    status_code: int
    payload: dict[str, Any] | None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class GitHubApiGateway:
    """Issues one authenticated GET per call and honours the rate limit headers.

    A non-success status or a body that is not a JSON object yields ``None``.
    When the quota is nearly exhausted the call pauses before returning, so
    callers never handle rate limiting themselves.
    """

    def __init__(
        self,
        settings: GitHubSettings,
        client: httpx.AsyncClient | None = None,
        *,
        governor: RateLimitGovernor | None = None,
        clock: SystemClock | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.api_url.rstrip("/")
        self._clock = clock or SystemClock()
        self._governor = governor or RateLimitGovernor(
            threshold=settings.rate_limit_threshold,
            clock=self._clock,
        )
        headers = {
            "Accept": settings.accept,
            "User-Agent": settings.user_agent,
        }
        if settings.token:
            headers["Authorization"] = f"Bearer {settings.token}"
        self._headers = headers
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._owns_client = client is None

    async def __aenter__(self) -> "GitHubApiGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def governor(self) -> RateLimitGovernor:
        return self._governor

    async def search(self, query_string: str) -> dict[str, Any] | None:
        """Call ``/search/repositories`` with an already rendered query string."""

        return await self.call(f"{self._base_url}/search/repositories?{query_string}")

    async def get(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any] | None:
        return (await self.get_response(path, params)).payload

    async def get_response(self, path: str, params: dict[str, str] | None = None) -> ApiResponse:
        """Like :meth:`get`, but keeps the HTTP status so callers can tell 404 from an outage."""

        return await self.request(f"{self._base_url}/{path.lstrip('/')}", params=params)

    async def call(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any] | None:
        return (await self.request(url, params)).payload

    async def request(self, url: str, params: dict[str, str] | None = None) -> ApiResponse:
        try:
            response = await self._client.get(url, params=params, headers=self._headers)
        except httpx.RequestError as exc:
            raise PlatformUnreachableError(f"GitHub request to {url} failed: {exc}") from exc

        if not response.is_success:
            LOGGER.warning("GitHub returned HTTP %s for %s: %s", response.status_code, url, response.text[:200])
            return ApiResponse(status_code=response.status_code, payload=None)

        decision = self._governor.should_wait(response.headers)
        if decision.wait:
            LOGGER.warning("GitHub rate limit nearly exhausted; pausing %.1fs until reset", decision.seconds)
            await self._clock.sleep(decision.seconds)

        try:
            payload = response.json()
        except ValueError:
            LOGGER.warning("GitHub returned a non-JSON body for %s", url)
            return ApiResponse(status_code=response.status_code, payload=None)
        if not isinstance(payload, dict):
            LOGGER.warning("GitHub returned an unexpected JSON shape for %s", url)
            return ApiResponse(status_code=response.status_code, payload=None)
        return ApiResponse(status_code=response.status_code, payload=payload)


__all__ = ["GitHubApiGateway", "ApiResponse"]
