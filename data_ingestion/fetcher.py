"""
Data Ingestion - Rate Limited Fetcher.

============================================================
RESPONSIBILITY
============================================================
Issues one HTTP request with a bounded retry policy.

- HTTP 429:        wait 2^attempt seconds, retry
- Other non-2xx:   raise UpstreamError immediately (not transient)
- Network failure: wait (attempt + 1) seconds, retry
- After max_retries attempts the typed error is raised

============================================================
DESIGN PRINCIPLES
============================================================
- No shared mutable state beyond the optional HTTP client
- Typed failures so the orchestrator can report precisely
- All waiting goes through the injected clock

============================================================
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.clock import ClockProtocol, SystemClock
from data_ingestion.exceptions import (
    NetworkFailureError,
    RateLimitedError,
    UpstreamError,
)


DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30.0

logger = logging.getLogger(__name__)


class RateLimitedFetcher:
    """
    HTTP JSON fetcher that understands 429s and transient network errors.

    Usage:
        fetcher = RateLimitedFetcher()
        data = await fetcher.fetch(
            "https://api.alternative.me/fng/",
            params={"limit": 1},
        )
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[ClockProtocol] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            client: Shared AsyncClient; when None a client is opened per call
            clock: Clock used for backoff sleeps
            timeout_seconds: Per-request timeout for self-managed clients
            default_headers: Headers merged into every request
        """
        self._client = client
        self._clock = clock or SystemClock()
        self._timeout_seconds = timeout_seconds
        self._default_headers = {"Accept": "application/json"}
        if default_headers:
            self._default_headers.update(default_headers)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        source_name: Optional[str] = None,
    ) -> Any:
        """
        Perform the request and return the decoded JSON body.

        Args:
            url: Absolute request URL
            method: HTTP method (GET or POST)
            params: Query parameters
            headers: Extra headers for this request
            json: JSON body for POST requests
            max_retries: Total attempts allowed for 429 and network failures
            source_name: Provider name attached to raised errors

        Returns:
            Decoded JSON

        Raises:
            RateLimitedError: 429 on every attempt
            UpstreamError: Any other non-2xx status, or an undecodable body
            NetworkFailureError: Transport failure on every attempt
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        request_headers = dict(self._default_headers)
        if headers:
            request_headers.update(headers)

        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            try:
                response = await self._send(method, url, params, request_headers, json)
            except httpx.TransportError as e:
                last_error = e
                if attempt == max_retries - 1:
                    break
                wait_seconds = 1.0 * (attempt + 1)
                logger.warning(
                    f"[{source_name or url}] Network failure on attempt "
                    f"{attempt + 1}/{max_retries}, retrying in {wait_seconds:.0f}s: {e!r}"
                )
                await self._clock.sleep(wait_seconds)
                continue

            if response.status_code == 429:
                last_error = None
                wait_seconds = float(2 ** attempt)
                logger.warning(
                    f"[{source_name or url}] Rate limited (429) on attempt "
                    f"{attempt + 1}/{max_retries}, waiting {wait_seconds:.0f}s"
                )
                await self._clock.sleep(wait_seconds)
                continue

            if not response.is_success:
                raise UpstreamError(
                    f"HTTP {response.status_code}: {response.reason_phrase}",
                    source_name=source_name,
                    status_code=response.status_code,
                    request_url=url,
                    attempts=attempt + 1,
                    context={"body": response.text[:200]},
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamError(
                    f"Invalid JSON in HTTP {response.status_code} response",
                    source_name=source_name,
                    status_code=response.status_code,
                    request_url=url,
                    attempts=attempt + 1,
                    original_error=e,
                )

        if last_error is not None:
            raise NetworkFailureError(
                f"Network failure after {max_retries} attempts: {last_error!r}",
                source_name=source_name,
                request_url=url,
                attempts=max_retries,
                original_error=last_error,
            ) from last_error

        raise RateLimitedError(
            f"Still rate limited after {max_retries} attempts",
            source_name=source_name,
            request_url=url,
            attempts=max_retries,
        )

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Dict[str, str],
        json: Optional[Any],
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(
                method, url, params=params, headers=headers, json=json
            )

        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.request(
                method, url, params=params, headers=headers, json=json
            )
