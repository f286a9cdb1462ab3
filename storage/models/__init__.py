"""
Storage Models Package.

============================================================
MODEL ORGANIZATION
============================================================

Market (market_data.py)
- MarketDataRecord       -> market_data
- FearGreedRecord        -> fear_greed_history
- GlobalMetricsRecord    -> global_metrics
- TrendingCoinRecord     -> trending_coins

DeFi / On-chain (defi.py)
- DeFiProtocolRecord     -> defi_protocols
- ChainTvlRecord         -> chain_tvl
- YieldPoolRecord        -> yield_pools
- OnChainMetricsRecord   -> onchain_metrics

Search index (data_chunks.py)
- DataChunkRecord        -> data_chunks

============================================================
"""

from storage.models.base import Base, FetchedAtMixin, TimestampMixin
from storage.models.data_chunks import DataChunkRecord
from storage.models.defi import (
    ChainTvlRecord,
    DeFiProtocolRecord,
    OnChainMetricsRecord,
    YieldPoolRecord,
)
from storage.models.market_data import (
    FearGreedRecord,
    GlobalMetricsRecord,
    MarketDataRecord,
    TrendingCoinRecord,
)


__all__ = [
    "Base",
    "FetchedAtMixin",
    "TimestampMixin",
    "MarketDataRecord",
    "FearGreedRecord",
    "GlobalMetricsRecord",
    "TrendingCoinRecord",
    "DeFiProtocolRecord",
    "ChainTvlRecord",
    "YieldPoolRecord",
    "OnChainMetricsRecord",
    "DataChunkRecord",
]
