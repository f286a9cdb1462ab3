"""
Data Ingestion - Collectors Package.

Each collector is responsible for one data domain of one source.

Collectors:
- coingecko: Market snapshots, global aggregate, trending, price history
- fear_greed: Fear & greed index (alternative.me)
- defillama: DeFi protocols, chain TVL and yield pools
- blockchain_info: Bitcoin on-chain summary
"""

from data_ingestion.collectors.base import BaseCollector, SourceClient
from data_ingestion.collectors.blockchain_info import BitcoinOnChainCollector
from data_ingestion.collectors.coingecko import (
    GlobalAggregateCollector,
    HistoricalPriceClient,
    MarketSnapshotCollector,
    TrendingCollector,
    coingecko_headers,
)
from data_ingestion.collectors.defillama import (
    ChainTvlCollector,
    DeFiProtocolCollector,
    YieldPoolCollector,
)
from data_ingestion.collectors.fear_greed import FearGreedCollector


__all__ = [
    "BaseCollector",
    "SourceClient",
    "MarketSnapshotCollector",
    "GlobalAggregateCollector",
    "TrendingCollector",
    "HistoricalPriceClient",
    "coingecko_headers",
    "FearGreedCollector",
    "DeFiProtocolCollector",
    "ChainTvlCollector",
    "YieldPoolCollector",
    "BitcoinOnChainCollector",
]
