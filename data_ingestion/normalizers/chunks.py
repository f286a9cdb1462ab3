"""
Data Ingestion - Chunk Normalizer.

============================================================
RESPONSIBILITY
============================================================
Renders normalized entities into short text chunks for the
searchable index.

- One builder per entity type, each accepting the matching
  collector's output
- Historical price series are sampled to bound index growth

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions, no I/O
- Missing values are written as "Unavailable", never as 0
- data_date is the entity's own time, not the render time

============================================================
"""

import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple, TypeVar

from data_ingestion.types import (
    ChainTvlSnapshot,
    ContentType,
    DataChunk,
    DeFiProtocolSnapshot,
    FearGreedReading,
    GlobalAggregate,
    MarketSnapshot,
    OnChainSummary,
    TrendingEntry,
    YieldPoolSnapshot,
)


UNAVAILABLE = "Unavailable"

P = TypeVar("P")


# =============================================================
# FORMATTING HELPERS
# =============================================================

def format_price(value: float) -> str:
    """Thousands-separated price; sub-dollar prices keep 6 decimals."""
    if abs(value) >= 1:
        return f"{value:,.2f}"
    return f"{value:.6f}".rstrip("0").rstrip(".") or "0"


def format_change(value: Optional[float]) -> str:
    """Signed percentage, e.g. +1.25% / -0.40%."""
    if value is None:
        return UNAVAILABLE
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.2f}%"


def _scaled(value: Optional[float], divisor: float, suffix: str, digits: int = 2) -> str:
    if value is None:
        return UNAVAILABLE
    return f"${value / divisor:.{digits}f}{suffix}"


def slugify(text: str) -> str:
    return re.sub(r"\s+", "-", text.strip().lower())


def _as_list(output) -> list:
    if output is None:
        return []
    if isinstance(output, (list, tuple)):
        return list(output)
    return [output]


# =============================================================
# LIVE PASS CHUNKS
# =============================================================

def market_chunks(snapshots: Sequence[MarketSnapshot], limit: int = 100) -> List[DataChunk]:
    """Summaries for the top `limit` assets by rank."""
    ranked = sorted(
        _as_list(snapshots),
        key=lambda s: s.rank if s.rank is not None else float("inf"),
    )
    chunks = []
    for s in ranked[:limit]:
        price = f"${format_price(s.price)}" if s.price is not None else UNAVAILABLE
        change = format_change(s.price_change_24h)
        chunks.append(DataChunk(
            content=(
                f"{s.name} ({s.symbol}) is currently trading at {price} "
                f"with a {change} change in 24 hours. "
                f"24h trading volume is {_scaled(s.volume_24h, 1e6, 'M')} "
                f"and market cap is {_scaled(s.market_cap, 1e9, 'B')}."
            ),
            content_type=ContentType.MARKET_SUMMARY,
            category_path=f"market/{s.symbol.lower()}",
            coin_symbol=s.symbol,
            source="coingecko",
            data_date=s.fetched_at,
            metadata={"rank": s.rank},
        ))
    return chunks


def sentiment_band(value: int) -> str:
    """Interpretive sentence for a fear & greed value."""
    if value < 25:
        return "Market is in extreme fear - historically a good buying opportunity."
    if value < 45:
        return "Market is fearful - caution advised but opportunities may exist."
    if value < 55:
        return "Market sentiment is neutral."
    if value < 75:
        return "Market is greedy - be careful with new positions."
    return "Market is in extreme greed - consider taking profits."


def fear_greed_chunks(reading: FearGreedReading) -> List[DataChunk]:
    return [
        DataChunk(
            content=(
                f"Fear & Greed Index is at {r.value} ({r.classification}). "
                f"{sentiment_band(r.value)}"
            ),
            content_type=ContentType.SENTIMENT_INDICATOR,
            category_path="sentiment/fear-greed",
            source="alternative.me",
            data_date=r.timestamp,
        )
        for r in _as_list(reading)
    ]


def global_chunks(aggregate: GlobalAggregate) -> List[DataChunk]:
    chunks = []
    for g in _as_list(aggregate):
        btc = f"{g.btc_dominance:.1f}%" if g.btc_dominance is not None else UNAVAILABLE
        eth = f"{g.eth_dominance:.1f}%" if g.eth_dominance is not None else UNAVAILABLE
        chunks.append(DataChunk(
            content=(
                f"Global crypto market cap is {_scaled(g.total_market_cap, 1e12, ' trillion')} "
                f"with {_scaled(g.total_volume_24h, 1e9, 'B', digits=1)} in 24h volume. "
                f"BTC dominance is {btc}, ETH dominance is {eth}. "
                f"Market cap changed {format_change(g.market_cap_change_24h)} in 24h."
            ),
            content_type=ContentType.MARKET_OVERVIEW,
            category_path="market/global",
            source="coingecko",
            data_date=g.timestamp,
        ))
    return chunks


def trending_chunks(entries: Sequence[TrendingEntry]) -> List[DataChunk]:
    """A single chunk naming every trending coin, in list order."""
    entries = sorted(_as_list(entries), key=lambda e: e.position)
    if not entries:
        return []
    names = ", ".join(e.name for e in entries)
    return [DataChunk(
        content=(
            f"Trending cryptocurrencies right now: {names}. "
            f"These coins are seeing increased search interest and social activity."
        ),
        content_type=ContentType.TRENDING,
        category_path="market/trending",
        source="coingecko",
        data_date=entries[0].fetched_at,
        metadata={"coin_ids": [e.coin_id for e in entries]},
    )]


def defi_chunks(protocols: Sequence[DeFiProtocolSnapshot], limit: int = 50) -> List[DataChunk]:
    """Chunks for the `limit` largest protocols (input is TVL-ordered)."""
    chunks = []
    for p in _as_list(protocols)[:limit]:
        category = p.category or "Uncategorized"
        chunks.append(DataChunk(
            content=(
                f"{p.name} has {_scaled(p.tvl, 1e9, 'B')} TVL on {p.chain or UNAVAILABLE}. "
                f"Category: {category}. 24h change: {format_change(p.tvl_change_24h)}."
            ),
            content_type=ContentType.DEFI_PROTOCOL,
            category_path=f"defi/{slugify(category)}",
            source="defillama",
            data_date=p.fetched_at,
        ))
    return chunks


def chain_tvl_chunks(chains: Sequence[ChainTvlSnapshot], limit: int = 20) -> List[DataChunk]:
    chunks = []
    for c in _as_list(chains)[:limit]:
        token = f" Native token: {c.token_symbol}." if c.token_symbol else ""
        chunks.append(DataChunk(
            content=f"{c.name} has {_scaled(c.tvl, 1e9, 'B')} total value locked across DeFi.{token}",
            content_type=ContentType.CHAIN_TVL,
            category_path=f"defi/chains/{slugify(c.name)}",
            coin_symbol=c.token_symbol,
            source="defillama",
            data_date=c.fetched_at,
        ))
    return chunks


def yield_chunks(pools: Sequence[YieldPoolSnapshot], limit: int = 50) -> List[DataChunk]:
    """Chunks for the `limit` largest pools (input is TVL-ordered)."""
    chunks = []
    for p in _as_list(pools)[:limit]:
        apy = f"{p.apy:.2f}%" if p.apy is not None else UNAVAILABLE
        stable = " Stablecoin pool." if p.stablecoin else ""
        chunks.append(DataChunk(
            content=(
                f"{p.symbol or p.pool} pool on {p.project} ({p.chain or UNAVAILABLE}) "
                f"yields {apy} APY with {_scaled(p.tvl_usd, 1e6, 'M')} TVL.{stable}"
            ),
            content_type=ContentType.YIELD_POOL,
            category_path=f"defi/yields/{slugify(p.project)}",
            source="defillama",
            data_date=p.fetched_at,
            metadata={"pool": p.pool, "apy_base": p.apy_base, "apy_reward": p.apy_reward},
        ))
    return chunks


def onchain_chunks(summary: OnChainSummary) -> List[DataChunk]:
    chunks = []
    for s in _as_list(summary):
        height = str(s.block_height) if s.block_height is not None else UNAVAILABLE
        # blockchain.info reports hash rate in GH/s
        hash_rate = f"{s.hash_rate / 1e9:.2f} EH/s" if s.hash_rate is not None else UNAVAILABLE
        tx_count = (
            f"{s.transaction_count_24h:,}" if s.transaction_count_24h is not None else UNAVAILABLE
        )
        chunks.append(DataChunk(
            content=(
                f"Bitcoin on-chain metrics: Block height {height}, "
                f"hash rate {hash_rate}, {tx_count} transactions (24h)."
            ),
            content_type=ContentType.ONCHAIN_METRICS,
            category_path="onchain/bitcoin",
            coin_symbol=s.coin,
            source="blockchain.info",
            data_date=s.fetched_at,
        ))
    return chunks


# =============================================================
# BACKFILL CHUNKS
# =============================================================

def sample_price_history(points: Sequence[P], every: int = 7) -> List[P]:
    """
    Every `every`-th point starting with the first.

    Yields ceil(len(points) / every) points.
    """
    if every < 1:
        raise ValueError("every must be at least 1")
    return list(points[::every])


def historical_price_chunks(
    coin_id: str,
    symbol: str,
    points: Sequence[Tuple[datetime, float]],
    every: int = 7,
) -> List[DataChunk]:
    """Sampled daily price chunks for one asset."""
    return [
        DataChunk(
            content=f"{symbol} price on {ts.date().isoformat()}: ${format_price(price)}",
            content_type=ContentType.HISTORICAL_PRICE,
            category_path=f"market/history/{coin_id}",
            coin_symbol=symbol,
            source="coingecko",
            data_date=ts,
        )
        for ts, price in sample_price_history(points, every)
    ]
