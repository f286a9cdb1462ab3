"""
Data Ingestion - Base Collector.

============================================================
PURPOSE
============================================================
Abstract base class for all data collectors.

============================================================
DESIGN PRINCIPLES
============================================================
- Fetch and normalize only - collectors never write to storage
- Missing upstream fields become None, never a made-up number
- Typed errors propagate to the orchestrator
- Pacing respects the owning source's per-minute budget

============================================================
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from core.clock import ClockProtocol, SystemClock, from_iso8601, from_unix
from data_ingestion.exceptions import ParseError
from data_ingestion.fetcher import DEFAULT_MAX_RETRIES, RateLimitedFetcher
from data_ingestion.types import NormalizedEntity, SourceConfig


CollectorOutput = Union[NormalizedEntity, Sequence[NormalizedEntity]]


class SourceClient:
    """
    Thin binding of one SourceConfig to the shared fetcher.

    Holds the request helpers and shape checks used by every
    collector and by the backfill's history clients.
    """

    name: str = "client"

    def __init__(
        self,
        source: SourceConfig,
        fetcher: RateLimitedFetcher,
        clock: Optional[ClockProtocol] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            source: Provider this client calls
            fetcher: Shared rate-limited fetcher
            clock: Clock used for pacing delays
            max_retries: Attempts per request
            headers: Extra headers (e.g. provider API key)
        """
        self._source = source
        self._fetcher = fetcher
        self._clock = clock or SystemClock()
        self._max_retries = max_retries
        self._headers = dict(headers or {})
        self._logger = logging.getLogger(f"collector.{self.name}")

    @property
    def source(self) -> SourceConfig:
        return self._source

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a path on the owning source."""
        return await self._fetcher.fetch(
            self._source.url(path),
            params=params,
            headers=self._headers or None,
            max_retries=self._max_retries,
            source_name=self._source.name,
        )

    def _require(self, payload: Any, key: str, expected: type) -> Any:
        """
        Extract a required key from a JSON object.

        Raises:
            ParseError: If payload is not an object or the key has the wrong type
        """
        if not isinstance(payload, dict):
            raise ParseError(
                f"Expected JSON object, got {type(payload).__name__}",
                source_name=self._source.name,
            )
        value = payload.get(key)
        if not isinstance(value, expected):
            raise ParseError(
                f"Expected '{key}' to be {expected.__name__}, got {type(value).__name__}",
                source_name=self._source.name,
                context={"keys": sorted(payload.keys())[:20]},
            )
        return value

    def _require_list(self, payload: Any) -> List[Any]:
        if not isinstance(payload, list):
            raise ParseError(
                f"Expected JSON array, got {type(payload).__name__}",
                source_name=self._source.name,
            )
        return payload


class BaseCollector(SourceClient, ABC):
    """
    Abstract base class for data collectors.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    - Call the owning source through the RateLimitedFetcher
    - Normalize raw JSON into one of the entity types
    - Report soft problems (e.g. a failed later page) as warnings

    ============================================================
    LIFECYCLE
    ============================================================
    1. Construct with a SourceConfig and a shared fetcher
    2. Call run() once per pass
    3. Read last_warnings for anything that degraded the result

    ============================================================
    """

    #: Name reported in SyncResult.source
    name: str = "collector"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.last_warnings: List[str] = []

    async def run(self) -> CollectorOutput:
        """
        Fetch and normalize one batch.

        Returns:
            A single entity or a list of entities

        Raises:
            FetchError: On unrecoverable HTTP failures
            ParseError: On an unexpected response shape
        """
        self.last_warnings = []
        return await self.collect()

    @abstractmethod
    async def collect(self) -> CollectorOutput:
        """Collector-specific fetch and normalize."""
        pass

    def _warn(self, message: str) -> None:
        self.last_warnings.append(message)
        self._logger.warning(message)


# =============================================================
# FIELD COERCION
# =============================================================

def opt_float(value: Any) -> Optional[float]:
    """Float or None. Booleans and unparseable strings are None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def opt_int(value: Any) -> Optional[int]:
    """Int or None."""
    number = opt_float(value)
    return int(number) if number is not None else None


def opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def opt_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO 8601 strings or unix seconds; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    number = opt_float(value)
    if number is not None:
        try:
            return from_unix(number)
        except (ValueError, OverflowError, OSError):
            # Outside the platform's representable range
            return None
    if isinstance(value, str):
        try:
            return from_iso8601(value)
        except ValueError:
            return None
    return None
