"""
Data Ingestion Package.

Multi-source market data sync engine: fetch, normalize, persist.
No business logic - only data acquisition.

Sub-packages:
- collectors: One collector per data domain
- normalizers: Index chunk rendering

Main components:
- orchestrator: One failure-isolated pass over every collector
- scheduler: Fixed-rate continuous sync
- backfill: Bounded historical backfill
"""

from data_ingestion.backfill import BackfillEngine
from data_ingestion.collectors import (
    BaseCollector,
    BitcoinOnChainCollector,
    ChainTvlCollector,
    DeFiProtocolCollector,
    FearGreedCollector,
    GlobalAggregateCollector,
    HistoricalPriceClient,
    MarketSnapshotCollector,
    TrendingCollector,
    YieldPoolCollector,
)
from data_ingestion.config import DEFAULT_WATCHLIST, IngestionConfig
from data_ingestion.exceptions import (
    ConfigurationError,
    FetchError,
    IngestionError,
    NetworkFailureError,
    ParseError,
    RateLimitedError,
    StorageUnavailableError,
    StorageWriteError,
    UpstreamError,
)
from data_ingestion.fetcher import RateLimitedFetcher
from data_ingestion.orchestrator import SyncOrchestrator, SyncStep, build_default_steps
from data_ingestion.scheduler import SYNC_TIERS, SyncScheduler, SyncTier
from data_ingestion.sources import DEFAULT_SOURCES, SourceRegistry
from data_ingestion.types import (
    BackfillReport,
    ChainTvlSnapshot,
    ContentType,
    DataChunk,
    DeFiProtocolSnapshot,
    FearGreedReading,
    GlobalAggregate,
    MarketSnapshot,
    NormalizedEntity,
    OnChainSummary,
    OrchestratorState,
    PassSummary,
    SourceConfig,
    SyncResult,
    TrendingEntry,
    YieldPoolSnapshot,
)


__all__ = [
    # Engine
    "SyncOrchestrator",
    "SyncStep",
    "build_default_steps",
    "SyncScheduler",
    "SyncTier",
    "SYNC_TIERS",
    "BackfillEngine",
    "RateLimitedFetcher",
    "SourceRegistry",
    "DEFAULT_SOURCES",
    # Config
    "IngestionConfig",
    "DEFAULT_WATCHLIST",
    # Collectors
    "BaseCollector",
    "MarketSnapshotCollector",
    "FearGreedCollector",
    "GlobalAggregateCollector",
    "TrendingCollector",
    "DeFiProtocolCollector",
    "ChainTvlCollector",
    "YieldPoolCollector",
    "BitcoinOnChainCollector",
    "HistoricalPriceClient",
    # Types
    "SourceConfig",
    "NormalizedEntity",
    "MarketSnapshot",
    "FearGreedReading",
    "GlobalAggregate",
    "TrendingEntry",
    "DeFiProtocolSnapshot",
    "ChainTvlSnapshot",
    "YieldPoolSnapshot",
    "OnChainSummary",
    "DataChunk",
    "ContentType",
    "SyncResult",
    "PassSummary",
    "BackfillReport",
    "OrchestratorState",
    # Errors
    "IngestionError",
    "FetchError",
    "RateLimitedError",
    "UpstreamError",
    "NetworkFailureError",
    "ParseError",
    "StorageUnavailableError",
    "StorageWriteError",
    "ConfigurationError",
]
