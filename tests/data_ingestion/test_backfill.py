"""
Tests for BackfillEngine.
"""

from unittest.mock import AsyncMock

import pytest

from data_ingestion.backfill import BackfillEngine
from data_ingestion.config import IngestionConfig
from data_ingestion.exceptions import StorageWriteError
from data_ingestion.types import FearGreedReading
from tests.conftest import status


DAY_MS = 86_400_000
START_MS = 1_677_628_800_000  # 2023-03-01


def price_chart(n, base=100.0):
    return {"prices": [[START_MS + i * DAY_MS, base + i] for i in range(n)]}


def fng_history(n):
    return {"data": [
        {"value": str(20 + i), "value_classification": "Fear", "timestamp": str(1709251200 - i * 86400)}
        for i in range(n)
    ]}


@pytest.fixture
def sink():
    sink = AsyncMock()
    sink.upsert = AsyncMock(side_effect=lambda entities, natural_key=None: len(entities))
    sink.index_chunks = AsyncMock(side_effect=lambda chunks: len(chunks))
    return sink


def make_engine(registry, fetcher, sink, clock, watchlist):
    config = IngestionConfig(backfill_watchlist=watchlist)
    return BackfillEngine.from_config(config, registry, fetcher, sink, clock)


class TestPriceBackfill:
    """Tests for per-asset price history."""

    @pytest.mark.asyncio
    async def test_one_request_per_asset(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", fng_history(3))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(365))
        fake_api.add("/api/v3/coins/ethereum/market_chart", price_chart(366))
        engine = make_engine(registry, fetcher, sink, mock_clock, {"bitcoin": "BTC", "ethereum": "ETH"})

        report = await engine.backfill()

        assert len(fake_api.calls("/api/v3/coins/bitcoin/market_chart")) == 1
        assert len(fake_api.calls("/api/v3/coins/ethereum/market_chart")) == 1
        assert fake_api.calls("/api/v3/coins/bitcoin/market_chart")[0].url.params["days"] == "365"
        assert report.chunks_per_asset == {"bitcoin": 53, "ethereum": 53}
        assert report.total_chunks == 106
        assert report.failed_assets == {}

        indexed = sink.index_chunks.await_args_list[0].args[0]
        assert indexed[0].coin_symbol == "BTC"
        assert indexed[0].content == "BTC price on 2023-03-01: $100.00"
        assert indexed[1].content == "BTC price on 2023-03-08: $107.00"

    @pytest.mark.asyncio
    async def test_failed_asset_is_skipped(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", fng_history(1))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(14))
        fake_api.add("/api/v3/coins/solana/market_chart", status(500, text="boom"))
        fake_api.add("/api/v3/coins/ripple/market_chart", price_chart(8))
        engine = make_engine(
            registry, fetcher, sink, mock_clock,
            {"bitcoin": "BTC", "solana": "SOL", "ripple": "XRP"},
        )

        report = await engine.backfill()

        assert report.chunks_per_asset == {"bitcoin": 2, "ripple": 2}
        assert "solana" in report.failed_assets
        # Delay between each pair of assets, none before the first
        assert mock_clock.sleeps == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_index_failure_marks_asset_failed(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", fng_history(1))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(7))
        sink.index_chunks.side_effect = StorageWriteError("index down", table="data_chunks")
        engine = make_engine(registry, fetcher, sink, mock_clock, {"bitcoin": "BTC"})

        report = await engine.backfill()

        assert report.chunks_per_asset == {}
        assert "index down" in report.failed_assets["bitcoin"]


class TestFearGreedBackfill:
    """Tests for the sentiment history."""

    @pytest.mark.asyncio
    async def test_each_reading_upserted(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", fng_history(5))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(1))
        engine = make_engine(registry, fetcher, sink, mock_clock, {"bitcoin": "BTC"})

        report = await engine.backfill()

        assert report.fear_greed_readings == 5
        assert sink.upsert.await_count == 5
        assert fake_api.calls("/fng/")[0].url.params["limit"] == "365"
        for call in sink.upsert.await_args_list:
            (batch,) = call.args
            assert len(batch) == 1
            assert isinstance(batch[0], FearGreedReading)

    @pytest.mark.asyncio
    async def test_reading_failures_are_counted(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", fng_history(4))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(1))
        outcomes = iter([1, StorageWriteError("locked", table="fear_greed_history"), 1, 1])

        def flaky(entities, natural_key=None):
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        sink.upsert.side_effect = flaky
        engine = make_engine(registry, fetcher, sink, mock_clock, {"bitcoin": "BTC"})

        report = await engine.backfill()

        assert report.fear_greed_readings == 3
        assert report.fear_greed_failures == 1
        assert report.chunks_per_asset == {"bitcoin": 1}

    @pytest.mark.asyncio
    async def test_history_fetch_failure_still_runs_assets(self, fake_api, fetcher, registry, sink, mock_clock):
        fake_api.add("/fng/", status(503))
        fake_api.add("/api/v3/coins/bitcoin/market_chart", price_chart(7))
        engine = make_engine(registry, fetcher, sink, mock_clock, {"bitcoin": "BTC"})

        report = await engine.backfill()

        assert report.fear_greed_readings == 0
        assert report.errors and report.errors[0].startswith("fear-greed")
        assert report.chunks_per_asset == {"bitcoin": 1}
