"""
Data Ingestion - Normalizers Package.

Renders normalized entities into index chunks.

Normalizers:
- chunks: One chunk builder per entity type, plus price-history sampling
"""

from data_ingestion.normalizers.chunks import (
    chain_tvl_chunks,
    defi_chunks,
    fear_greed_chunks,
    global_chunks,
    historical_price_chunks,
    market_chunks,
    onchain_chunks,
    sample_price_history,
    trending_chunks,
    yield_chunks,
)


__all__ = [
    "market_chunks",
    "fear_greed_chunks",
    "global_chunks",
    "trending_chunks",
    "defi_chunks",
    "chain_tvl_chunks",
    "yield_chunks",
    "onchain_chunks",
    "historical_price_chunks",
    "sample_price_history",
]
