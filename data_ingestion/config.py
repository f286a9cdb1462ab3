"""
Data Ingestion - Configuration.

============================================================
CONFIGURABLE SYNC ENGINE
============================================================

All pacing, paging, backfill and storage parameters are
configurable.

Configuration can be loaded from:
- Default values
- Environment variables (.env honoured via python-dotenv)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from data_ingestion.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_WATCHLIST: Dict[str, str] = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "solana": "SOL",
    "cardano": "ADA",
    "ripple": "XRP",
}


@dataclass
class IngestionConfig:
    """
    Every tunable of the sync engine.

    Delays are in seconds. The reference cadences are a 5 minute
    pass, 2s between market pages, 1s after network-heavy collectors
    and 2s between backfill assets.
    """

    # Scheduler
    sync_interval_minutes: float = 5.0

    # Fetcher
    max_retries: int = 3
    http_timeout_seconds: float = 30.0

    # Market snapshot paging
    market_pages: int = 2
    market_per_page: int = 250
    page_delay_seconds: float = 2.0

    # Orchestrator pacing
    collector_delay_seconds: float = 1.0

    # Index limits
    market_chunk_limit: int = 100
    defi_protocol_limit: int = 200
    defi_chunk_limit: int = 50
    chain_chunk_limit: int = 20
    yield_pool_limit: int = 100
    yield_chunk_limit: int = 50

    # Backfill
    backfill_days: int = 365
    backfill_sample_every: int = 7
    backfill_asset_delay_seconds: float = 2.0
    backfill_watchlist: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_WATCHLIST)
    )

    # Providers
    coingecko_api_key: Optional[str] = None
    base_url_overrides: Dict[str, str] = field(default_factory=dict)

    # Storage (None => degraded, writes become no-ops)
    database_url: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigurationError: On any invalid value
        """
        positive = {
            "sync_interval_minutes": self.sync_interval_minutes,
            "max_retries": self.max_retries,
            "http_timeout_seconds": self.http_timeout_seconds,
            "market_pages": self.market_pages,
            "market_per_page": self.market_per_page,
            "backfill_days": self.backfill_days,
            "backfill_sample_every": self.backfill_sample_every,
        }
        for key, value in positive.items():
            if value is None or value <= 0:
                raise ConfigurationError(f"{key} must be positive, got {value!r}", config_key=key)

        non_negative = {
            "page_delay_seconds": self.page_delay_seconds,
            "collector_delay_seconds": self.collector_delay_seconds,
            "backfill_asset_delay_seconds": self.backfill_asset_delay_seconds,
            "market_chunk_limit": self.market_chunk_limit,
            "defi_protocol_limit": self.defi_protocol_limit,
            "defi_chunk_limit": self.defi_chunk_limit,
            "chain_chunk_limit": self.chain_chunk_limit,
            "yield_pool_limit": self.yield_pool_limit,
            "yield_chunk_limit": self.yield_chunk_limit,
        }
        for key, value in non_negative.items():
            if value is None or value < 0:
                raise ConfigurationError(f"{key} must not be negative, got {value!r}", config_key=key)

        if not self.backfill_watchlist:
            raise ConfigurationError("backfill_watchlist must not be empty", config_key="backfill_watchlist")

    @property
    def storage_configured(self) -> bool:
        return bool(self.database_url)

    # ---------------------------------------------------------
    # LOADERS
    # ---------------------------------------------------------

    @classmethod
    def from_env(cls, base: Optional["IngestionConfig"] = None) -> "IngestionConfig":
        """
        Load configuration from environment variables.

        Args:
            base: Values to start from (e.g. loaded from YAML)
        """
        load_dotenv()

        values = dict(base.__dict__) if base else {}

        def _set(key: str, env: str, cast) -> None:
            raw = os.getenv(env)
            if raw is None or raw == "":
                return
            try:
                values[key] = cast(raw)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid value for {env}: {raw!r}", config_key=env
                ) from None

        _set("sync_interval_minutes", "SYNC_INTERVAL_MINUTES", float)
        _set("max_retries", "SYNC_MAX_RETRIES", int)
        _set("http_timeout_seconds", "SYNC_HTTP_TIMEOUT_SECONDS", float)
        _set("market_pages", "SYNC_MARKET_PAGES", int)
        _set("backfill_days", "BACKFILL_DAYS", int)
        _set("coingecko_api_key", "COINGECKO_API_KEY", str)
        _set("database_url", "DATABASE_URL", str)

        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Path) -> "IngestionConfig":
        """
        Load configuration from a YAML file.

        Unknown keys are rejected so typos do not silently fall back
        to defaults.
        """
        import yaml

        with open(path, "r") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown config keys in {path}: {', '.join(unknown)}",
                config_key=unknown[0],
            )

        config = cls(**data)
        logger.info(f"Loaded ingestion config from {path}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Config as a dict with secrets masked."""
        data = dict(self.__dict__)
        if data.get("coingecko_api_key"):
            data["coingecko_api_key"] = "***"
        if data.get("database_url"):
            data["database_url"] = data["database_url"].split("@")[-1]
        return data
