"""
Data Ingestion - Exceptions.

============================================================
ERROR TAXONOMY
============================================================
- RateLimitedError:        HTTP 429, reported after retries exhausted
- UpstreamError:           non-2xx (not 429), reported immediately
- NetworkFailureError:     timeout / connection failure, reported
                           after retries exhausted
- ParseError:              upstream JSON has an unexpected shape
- StorageUnavailableError: durable store not configured
                           (the sink degrades to a no-op)
- StorageWriteError:       store configured but a write failed
- ConfigurationError:      malformed configuration, fatal at startup

Everything except ConfigurationError is caught per collector by the
orchestrator and turned into a failed SyncResult.

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Optional


class IngestionError(Exception):
    """Base exception for all ingestion errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


# =============================================================
# FETCH ERRORS
# =============================================================

class FetchError(IngestionError):
    """Error during data fetching from a provider API."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        request_url: Optional[str] = None,
        attempts: int = 1,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.status_code = status_code
        self.request_url = request_url
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "request_url": self.request_url,
            "attempts": self.attempts,
        })
        return data


class RateLimitedError(FetchError):
    """HTTP 429 persisted through every retry."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        request_url: Optional[str] = None,
        attempts: int = 1,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            source_name,
            status_code=429,
            request_url=request_url,
            attempts=attempts,
            context=context,
        )


class UpstreamError(FetchError):
    """Non-transient error status (or unreadable body) from the provider."""


class NetworkFailureError(FetchError):
    """Timeout, DNS or connection failure persisted through every retry."""


# =============================================================
# NORMALIZATION / STORAGE / CONFIG ERRORS
# =============================================================

class ParseError(IngestionError):
    """Upstream response did not have the shape a collector expects."""


class StorageUnavailableError(IngestionError):
    """Durable store is not configured."""


class StorageWriteError(IngestionError):
    """Durable store is configured but a write failed."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, None, original_error, context)
        self.table = table

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["table"] = self.table
        return data


class ConfigurationError(IngestionError):
    """Malformed configuration. Always fatal."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        config_key: Optional[str] = None,
    ) -> None:
        super().__init__(message, source_name)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
