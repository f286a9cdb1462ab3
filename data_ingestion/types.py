"""
Data Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the sync engine.

- Source configuration
- Normalized entities (one frozen dataclass per data domain)
- Derived text chunks for the searchable index
- Per-collector and per-pass result types

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures: a new pass produces new instances
- Every entity names its natural key for idempotent upsert
- Missing upstream values are None, never a guessed number
- Serializable for logging

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from data_ingestion.exceptions import ConfigurationError


# =============================================================
# ENUMS
# =============================================================

class ContentType(str, Enum):
    """Kinds of text chunk written to the searchable index."""
    MARKET_SUMMARY = "market_summary"
    SENTIMENT_INDICATOR = "sentiment_indicator"
    MARKET_OVERVIEW = "market_overview"
    TRENDING = "trending"
    DEFI_PROTOCOL = "defi_protocol"
    CHAIN_TVL = "chain_tvl"
    YIELD_POOL = "yield_pool"
    ONCHAIN_METRICS = "onchain_metrics"
    HISTORICAL_PRICE = "historical_price"


class OrchestratorState(str, Enum):
    """Orchestrator position within a pass."""
    IDLE = "idle"
    RUNNING = "running"


# =============================================================
# SOURCE CONFIGURATION
# =============================================================

@dataclass(frozen=True)
class SourceConfig:
    """Static description of one external data provider."""
    name: str
    base_url: str
    rate_limit_per_minute: int
    priority: int = 1

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Source name must not be empty", config_key="name")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"base_url must be an http(s) URL, got {self.base_url!r}",
                source_name=self.name,
                config_key="base_url",
            )
        if self.rate_limit_per_minute <= 0:
            raise ConfigurationError(
                f"rate_limit_per_minute must be positive, got {self.rate_limit_per_minute}",
                source_name=self.name,
                config_key="rate_limit_per_minute",
            )

    @property
    def min_interval_seconds(self) -> float:
        """Smallest gap between two calls that stays within the budget."""
        return 60.0 / self.rate_limit_per_minute

    def url(self, path: str) -> str:
        """Join a path onto the base URL."""
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


# =============================================================
# NORMALIZED ENTITIES
# =============================================================

@dataclass(frozen=True)
class MarketSnapshot:
    """Ranked asset snapshot from the markets endpoint."""
    natural_key: ClassVar[str] = "symbol"

    symbol: str
    name: str
    rank: Optional[int]
    price: Optional[float]
    price_change_1h: Optional[float]
    price_change_24h: Optional[float]
    price_change_7d: Optional[float]
    price_change_30d: Optional[float]
    market_cap: Optional[float]
    volume_24h: Optional[float]
    circulating_supply: Optional[float]
    total_supply: Optional[float]
    max_supply: Optional[float]
    ath: Optional[float]
    ath_date: Optional[datetime]
    atl: Optional[float]
    atl_date: Optional[datetime]
    last_updated: Optional[datetime]
    fetched_at: datetime


@dataclass(frozen=True)
class FearGreedReading:
    """One daily value of the fear & greed sentiment index."""
    natural_key: ClassVar[str] = "timestamp"

    timestamp: datetime
    value: int
    classification: str
    time_until_update: Optional[int] = None


@dataclass(frozen=True)
class GlobalAggregate:
    """Whole-market totals. Keyed by the provider's own update time."""
    natural_key: ClassVar[str] = "timestamp"

    timestamp: datetime
    total_market_cap: Optional[float]
    total_volume_24h: Optional[float]
    btc_dominance: Optional[float]
    eth_dominance: Optional[float]
    active_cryptocurrencies: Optional[int]
    markets: Optional[int]
    market_cap_change_24h: Optional[float]
    fetched_at: datetime


@dataclass(frozen=True)
class TrendingEntry:
    """
    One coin in the trending-search list.

    The list is a snapshot: a new batch replaces the whole table,
    so coins that dropped off the list do not linger.
    """
    natural_key: ClassVar[str] = "coin_id"
    replaces_table: ClassVar[bool] = True

    coin_id: str
    symbol: str
    name: str
    position: int
    market_cap_rank: Optional[int]
    fetched_at: datetime


@dataclass(frozen=True)
class DeFiProtocolSnapshot:
    """TVL snapshot of one DeFi protocol."""
    natural_key: ClassVar[str] = "name"

    name: str
    chain: Optional[str]
    tvl: Optional[float]
    tvl_change_24h: Optional[float]
    tvl_change_7d: Optional[float]
    category: Optional[str]
    chains: Tuple[str, ...]
    mcap_tvl: Optional[float]
    fetched_at: datetime


@dataclass(frozen=True)
class ChainTvlSnapshot:
    """Total value locked on one chain."""
    natural_key: ClassVar[str] = "name"

    name: str
    tvl: Optional[float]
    token_symbol: Optional[str]
    fetched_at: datetime


@dataclass(frozen=True)
class YieldPoolSnapshot:
    """Yield and TVL of one DefiLlama pool."""
    natural_key: ClassVar[str] = "pool"

    pool: str
    project: str
    chain: Optional[str]
    symbol: Optional[str]
    tvl_usd: Optional[float]
    apy: Optional[float]
    apy_base: Optional[float]
    apy_reward: Optional[float]
    stablecoin: Optional[bool]
    fetched_at: datetime


@dataclass(frozen=True)
class OnChainSummary:
    """Chain-level activity metrics. Unavailable metrics stay None."""
    natural_key: ClassVar[str] = "coin"

    coin: str
    active_addresses_24h: Optional[int]
    transaction_count_24h: Optional[int]
    avg_transaction_value: Optional[float]
    hash_rate: Optional[float]
    difficulty: Optional[float]
    block_height: Optional[int]
    mempool_size: Optional[int]
    fetched_at: datetime


NormalizedEntity = Union[
    MarketSnapshot,
    FearGreedReading,
    GlobalAggregate,
    TrendingEntry,
    DeFiProtocolSnapshot,
    ChainTvlSnapshot,
    YieldPoolSnapshot,
    OnChainSummary,
]

ENTITY_TYPES: Tuple[type, ...] = (
    MarketSnapshot,
    FearGreedReading,
    GlobalAggregate,
    TrendingEntry,
    DeFiProtocolSnapshot,
    ChainTvlSnapshot,
    YieldPoolSnapshot,
    OnChainSummary,
)


def natural_key_of(entity: NormalizedEntity) -> Any:
    """Value of an entity's natural key."""
    return getattr(entity, entity.natural_key)


def replaces_table(entity_type: type) -> bool:
    """True when a batch of this type is the complete current set."""
    return getattr(entity_type, "replaces_table", False)


# =============================================================
# INDEX CHUNKS
# =============================================================

@dataclass(frozen=True)
class DataChunk:
    """Denormalized text summary appended to the searchable index."""
    content: str
    content_type: ContentType
    category_path: str
    source: str
    data_date: datetime
    coin_symbol: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================
# RESULT TYPES
# =============================================================

@dataclass(frozen=True)
class SyncResult:
    """Outcome of one collector invocation within a pass."""
    source: str
    success: bool
    records_processed: int
    duration_ms: int
    error: Optional[str] = None
    chunks_indexed: int = 0
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/monitoring."""
        return {
            "source": self.source,
            "success": self.success,
            "records_processed": self.records_processed,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "chunks_indexed": self.chunks_indexed,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PassSummary:
    """Aggregate of every SyncResult in one pass."""
    results: Tuple[SyncResult, ...]
    started_at: datetime
    completed_at: datetime

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_sources(self) -> List[str]:
        return [r.source for r in self.results if not r.success]

    @property
    def total_records(self) -> int:
        return sum(r.records_processed for r in self.results)

    @property
    def total_duration_ms(self) -> int:
        return sum(r.duration_ms for r in self.results)

    def describe(self) -> str:
        return (
            f"{self.succeeded} of {self.total} sources succeeded, "
            f"{self.total_records} total records, "
            f"duration {self.total_duration_ms}ms"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "succeeded": self.succeeded,
            "total": self.total,
            "total_records": self.total_records,
            "total_duration_ms": self.total_duration_ms,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class BackfillReport:
    """What a backfill run wrote, and what it skipped."""
    fear_greed_readings: int = 0
    fear_greed_failures: int = 0
    chunks_per_asset: Dict[str, int] = field(default_factory=dict)
    failed_assets: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def total_chunks(self) -> int:
        return sum(self.chunks_per_asset.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fear_greed_readings": self.fear_greed_readings,
            "fear_greed_failures": self.fear_greed_failures,
            "chunks_per_asset": dict(self.chunks_per_asset),
            "failed_assets": dict(self.failed_assets),
            "total_chunks": self.total_chunks,
            "errors": self.errors[:5],
        }
