"""
Tests for the chunk normalizer.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from data_ingestion.normalizers.chunks import (
    chain_tvl_chunks,
    defi_chunks,
    fear_greed_chunks,
    format_price,
    global_chunks,
    historical_price_chunks,
    market_chunks,
    onchain_chunks,
    sample_price_history,
    trending_chunks,
    yield_chunks,
)
from data_ingestion.types import (
    ChainTvlSnapshot,
    ContentType,
    DeFiProtocolSnapshot,
    FearGreedReading,
    GlobalAggregate,
    OnChainSummary,
    TrendingEntry,
    YieldPoolSnapshot,
)
from tests.conftest import FIXED_NOW, make_snapshot


class TestMarketChunks:
    """Tests for market summary chunks."""

    def test_summary_text(self):
        (chunk,) = market_chunks([make_snapshot("BTC", name="Bitcoin")])

        assert chunk.content == (
            "Bitcoin (BTC) is currently trading at $65,000.00 with a +2.50% change "
            "in 24 hours. 24h trading volume is $34000.00M and market cap is $1200.00B."
        )
        assert chunk.content_type is ContentType.MARKET_SUMMARY
        assert chunk.category_path == "market/btc"
        assert chunk.coin_symbol == "BTC"
        assert chunk.data_date == FIXED_NOW

    def test_top_n_by_rank(self):
        snapshots = [make_snapshot(f"C{i}", rank=i) for i in range(150, 0, -1)]
        snapshots.append(make_snapshot("NORANK", rank=None))

        chunks = market_chunks(snapshots, limit=100)

        assert len(chunks) == 100
        assert chunks[0].coin_symbol == "C1"
        assert "NORANK" not in {c.coin_symbol for c in chunks}

    def test_missing_values_are_unavailable(self):
        (chunk,) = market_chunks([make_snapshot(price=None, price_change_24h=None, market_cap=None)])
        assert "trading at Unavailable" in chunk.content
        assert "with a Unavailable change" in chunk.content
        assert "market cap is Unavailable" in chunk.content


class TestSentimentAndOverviewChunks:
    """Tests for fear & greed, global and trending chunks."""

    @pytest.mark.parametrize("value,phrase", [
        (10, "extreme fear"),
        (30, "fearful"),
        (50, "neutral"),
        (60, "greedy"),
        (90, "extreme greed"),
    ])
    def test_fear_greed_bands(self, value, phrase):
        reading = FearGreedReading(timestamp=FIXED_NOW, value=value, classification="X")
        (chunk,) = fear_greed_chunks(reading)

        assert chunk.content.startswith(f"Fear & Greed Index is at {value} (X). ")
        assert phrase in chunk.content.lower()
        assert chunk.category_path == "sentiment/fear-greed"
        assert chunk.source == "alternative.me"

    def test_global_overview(self):
        aggregate = GlobalAggregate(
            timestamp=FIXED_NOW,
            total_market_cap=2.5e12,
            total_volume_24h=9.12e10,
            btc_dominance=52.34,
            eth_dominance=16.9,
            active_cryptocurrencies=13000,
            markets=1000,
            market_cap_change_24h=-1.234,
            fetched_at=FIXED_NOW,
        )
        (chunk,) = global_chunks(aggregate)

        assert chunk.content == (
            "Global crypto market cap is $2.50 trillion with $91.2B in 24h volume. "
            "BTC dominance is 52.3%, ETH dominance is 16.9%. "
            "Market cap changed -1.23% in 24h."
        )
        assert chunk.category_path == "market/global"

    def test_trending_single_chunk(self):
        entries = [
            TrendingEntry("bonk", "BONK", "Bonk", 2, None, FIXED_NOW),
            TrendingEntry("pepe", "PEPE", "Pepe", 1, 30, FIXED_NOW),
        ]
        chunks = trending_chunks(entries)

        assert len(chunks) == 1
        assert chunks[0].content.startswith("Trending cryptocurrencies right now: Pepe, Bonk.")
        assert trending_chunks([]) == []


class TestDeFiAndChainChunks:
    """Tests for DefiLlama chunks."""

    def test_defi_category_slug_and_limit(self):
        protocols = [
            DeFiProtocolSnapshot(
                name=f"P{i}", chain="Ethereum", tvl=1.5e9, tvl_change_24h=0.5,
                tvl_change_7d=None, category="Liquid Staking", chains=("Ethereum",),
                mcap_tvl=None, fetched_at=FIXED_NOW,
            )
            for i in range(60)
        ]
        chunks = defi_chunks(protocols, limit=50)

        assert len(chunks) == 50
        assert chunks[0].content == (
            "P0 has $1.50B TVL on Ethereum. Category: Liquid Staking. 24h change: +0.50%."
        )
        assert chunks[0].category_path == "defi/liquid-staking"

    def test_defi_uncategorized(self):
        protocol = DeFiProtocolSnapshot(
            name="Mystery", chain=None, tvl=None, tvl_change_24h=None, tvl_change_7d=None,
            category=None, chains=(), mcap_tvl=None, fetched_at=FIXED_NOW,
        )
        (chunk,) = defi_chunks([protocol])
        assert chunk.category_path == "defi/uncategorized"
        assert "Unavailable TVL on Unavailable" in chunk.content

    def test_chain_tvl(self):
        (chunk,) = chain_tvl_chunks([ChainTvlSnapshot("Ethereum", 5.5e10, "ETH", FIXED_NOW)])
        assert chunk.content == "Ethereum has $55.00B total value locked across DeFi. Native token: ETH."
        assert chunk.category_path == "defi/chains/ethereum"
        assert chunk.coin_symbol == "ETH"

    def _pool(self, pool, **overrides):
        values = dict(
            pool=pool, project="aave v3", chain="Arbitrum", symbol="USDC", tvl_usd=4.0e8,
            apy=5.2, apy_base=4.0, apy_reward=1.2, stablecoin=True, fetched_at=FIXED_NOW,
        )
        values.update(overrides)
        return YieldPoolSnapshot(**values)

    def test_yield_pool_text(self):
        (chunk,) = yield_chunks([self._pool("p-aave")])
        assert chunk.content == (
            "USDC pool on aave v3 (Arbitrum) yields 5.20% APY with $400.00M TVL. Stablecoin pool."
        )
        assert chunk.content_type == ContentType.YIELD_POOL
        assert chunk.category_path == "defi/yields/aave-v3"
        assert chunk.metadata == {"pool": "p-aave", "apy_base": 4.0, "apy_reward": 1.2}

    def test_yield_pool_limit_and_missing_values(self):
        pools = [
            self._pool("p-1", symbol=None, chain=None, apy=None, stablecoin=None),
            self._pool("p-2"),
        ]
        chunks = yield_chunks(pools, limit=1)
        assert len(chunks) == 1
        assert chunks[0].content == (
            "p-1 pool on aave v3 (Unavailable) yields Unavailable APY with $400.00M TVL."
        )


class TestOnChainChunks:
    """Tests for on-chain chunks."""

    def _summary(self, **overrides):
        values = dict(
            coin="BTC", active_addresses_24h=None, transaction_count_24h=412345,
            avg_transaction_value=1.2, hash_rate=6.1e11, difficulty=8.3e13,
            block_height=834000, mempool_size=None, fetched_at=FIXED_NOW,
        )
        values.update(overrides)
        return OnChainSummary(**values)

    def test_text(self):
        (chunk,) = onchain_chunks(self._summary())
        assert chunk.content == (
            "Bitcoin on-chain metrics: Block height 834000, hash rate 610.00 EH/s, "
            "412,345 transactions (24h)."
        )
        assert chunk.category_path == "onchain/bitcoin"
        assert chunk.coin_symbol == "BTC"
        assert chunk.source == "blockchain.info"

    def test_unavailable(self):
        (chunk,) = onchain_chunks(self._summary(
            block_height=None, hash_rate=None, transaction_count_24h=None,
        ))
        assert chunk.content == (
            "Bitcoin on-chain metrics: Block height Unavailable, hash rate Unavailable, "
            "Unavailable transactions (24h)."
        )


class TestHistoricalSampling:
    """Tests for bounded price-history sampling."""

    @staticmethod
    def _points(n):
        start = datetime(2023, 3, 1, tzinfo=timezone.utc)
        return [(start + timedelta(days=i), 100.0 + i) for i in range(n)]

    @pytest.mark.parametrize("n", [0, 1, 7, 8, 365, 366])
    def test_sample_size_is_ceil(self, n):
        assert len(sample_price_history(self._points(n), every=7)) == math.ceil(n / 7)

    def test_365_and_366_points_give_53_chunks(self):
        assert len(historical_price_chunks("bitcoin", "BTC", self._points(365))) == 53
        assert len(historical_price_chunks("bitcoin", "BTC", self._points(366))) == 53

    def test_sample_keeps_every_seventh_from_first(self):
        sampled = sample_price_history(list(range(20)), every=7)
        assert sampled == [0, 7, 14]

    def test_invalid_step(self):
        with pytest.raises(ValueError):
            sample_price_history([1, 2, 3], every=0)

    def test_chunk_text(self):
        chunk = historical_price_chunks("ripple", "XRP", [(FIXED_NOW, 0.6234)])[0]
        assert chunk.content == "XRP price on 2024-03-01: $0.6234"
        assert chunk.content_type is ContentType.HISTORICAL_PRICE
        assert chunk.category_path == "market/history/ripple"
        assert chunk.coin_symbol == "XRP"
        assert chunk.data_date == FIXED_NOW


class TestFormatPrice:
    """Tests for price formatting."""

    @pytest.mark.parametrize("value,expected", [
        (65000.0, "65,000.00"),
        (1.5, "1.50"),
        (0.000123, "0.000123"),
        (0.5, "0.5"),
    ])
    def test_format(self, value, expected):
        assert format_price(value) == expected
