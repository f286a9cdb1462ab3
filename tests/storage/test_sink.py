"""
Tests for PersistenceSink.

============================================================
COVERAGE
============================================================
- Idempotent upsert per natural key
- Trending list replaced wholesale by each batch
- Batch validation (type, key, duplicates)
- Degraded mode without a database
- Append-only chunk index
- Every entity type maps onto its table

============================================================
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from data_ingestion.exceptions import StorageWriteError
from data_ingestion.types import (
    ChainTvlSnapshot,
    ContentType,
    DataChunk,
    DeFiProtocolSnapshot,
    FearGreedReading,
    GlobalAggregate,
    OnChainSummary,
    TrendingEntry,
    YieldPoolSnapshot,
)
from storage.models import (
    ChainTvlRecord,
    DataChunkRecord,
    DeFiProtocolRecord,
    FearGreedRecord,
    GlobalMetricsRecord,
    MarketDataRecord,
    OnChainMetricsRecord,
    TrendingCoinRecord,
    YieldPoolRecord,
)
from storage.sink import ENTITY_TABLES, PersistenceSink
from tests.conftest import FIXED_NOW, make_snapshot


@pytest.fixture
def sink(session_factory):
    return PersistenceSink(session_factory)


def count(session_factory, model):
    with session_factory() as session:
        return session.query(model).count()


def chunk(text="BTC is up", **overrides):
    values = dict(
        content=text,
        content_type=ContentType.MARKET_SUMMARY,
        category_path="market/btc",
        source="coingecko",
        data_date=FIXED_NOW,
        coin_symbol="BTC",
    )
    values.update(overrides)
    return DataChunk(**values)


# ============================================================
# UPSERT
# ============================================================

class TestUpsert:
    """Tests for idempotent current-state writes."""

    @pytest.mark.asyncio
    async def test_same_key_twice_is_one_row(self, sink, session_factory):
        await sink.upsert([make_snapshot("BTC", price=60000.0)])
        later = FIXED_NOW + timedelta(minutes=5)
        written = await sink.upsert([make_snapshot("BTC", price=61000.0, fetched_at=later)])

        assert written == 1
        assert count(session_factory, MarketDataRecord) == 1
        with session_factory() as session:
            row = session.get(MarketDataRecord, "BTC")
            assert row.price == 61000.0
            assert row.fetched_at.replace(tzinfo=None) == later.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, sink, session_factory):
        batch = [make_snapshot("BTC"), make_snapshot("ETH", rank=2, price=3500.0)]

        await sink.upsert(batch)
        await sink.upsert(batch)

        assert count(session_factory, MarketDataRecord) == 2

    @pytest.mark.asyncio
    async def test_duplicate_keys_keep_first(self, sink, session_factory):
        written = await sink.upsert([
            make_snapshot("BTC", price=1.0),
            make_snapshot("BTC", price=2.0),
        ])

        assert written == 1
        with session_factory() as session:
            assert session.get(MarketDataRecord, "BTC").price == 1.0

    @pytest.mark.asyncio
    async def test_empty_batch(self, sink):
        assert await sink.upsert([]) == 0

    @pytest.mark.asyncio
    async def test_natural_key_mismatch(self, sink):
        with pytest.raises(ValueError, match="symbol"):
            await sink.upsert([make_snapshot()], natural_key="timestamp")

    @pytest.mark.asyncio
    async def test_matching_natural_key(self, sink):
        assert await sink.upsert([make_snapshot()], natural_key="symbol") == 1

    @pytest.mark.asyncio
    async def test_mixed_batch_rejected(self, sink, session_factory):
        reading = FearGreedReading(timestamp=FIXED_NOW, value=50, classification="Neutral")
        with pytest.raises(TypeError):
            await sink.upsert([make_snapshot(), reading])
        assert count(session_factory, MarketDataRecord) == 0

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, sink):
        with pytest.raises(TypeError):
            await sink.upsert([chunk()])


# ============================================================
# LIST REPLACEMENT
# ============================================================

def trending(coin_id, position, at=FIXED_NOW):
    return TrendingEntry(coin_id, coin_id.upper(), coin_id.title(), position, None, at)


def trending_rows(session_factory):
    with session_factory() as session:
        rows = session.execute(
            select(TrendingCoinRecord.coin_id, TrendingCoinRecord.position)
            .order_by(TrendingCoinRecord.position, TrendingCoinRecord.coin_id)
        ).all()
    return [tuple(row) for row in rows]


class TestTrendingReplacement:
    """Tests that each trending batch is the whole current list."""

    @pytest.mark.asyncio
    async def test_second_list_replaces_first(self, sink, session_factory):
        await sink.upsert([trending("pepe", 1), trending("wif", 2)])
        later = FIXED_NOW + timedelta(minutes=15)
        written = await sink.upsert([trending("bonk", 1, later)])

        assert written == 1
        assert trending_rows(session_factory) == [("bonk", 1)]

    @pytest.mark.asyncio
    async def test_reordered_list_keeps_members(self, sink, session_factory):
        await sink.upsert([trending("pepe", 1), trending("wif", 2), trending("bonk", 3)])
        await sink.upsert([trending("wif", 1), trending("pepe", 2)])

        assert trending_rows(session_factory) == [("wif", 1), ("pepe", 2)]

    @pytest.mark.asyncio
    async def test_other_tables_are_not_pruned(self, sink, session_factory):
        await sink.upsert([make_snapshot("BTC"), make_snapshot("ETH", rank=2)])
        await sink.upsert([make_snapshot("BTC")])

        assert count(session_factory, MarketDataRecord) == 2

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_list(self, session_factory):
        sink = PersistenceSink(session_factory)
        await sink.upsert([trending("pepe", 1)])

        # Position is NOT NULL: the whole transaction rolls back
        with pytest.raises(StorageWriteError):
            await sink.upsert([trending("bonk", 1), trending("wif", None)])

        assert trending_rows(session_factory) == [("pepe", 1)]


# ============================================================
# ENTITY TABLES
# ============================================================

class TestEntityTables:
    """Tests that every entity type lands in its own table."""

    def test_every_entity_type_has_a_table(self):
        assert len(ENTITY_TABLES) == 8

    @pytest.mark.asyncio
    async def test_all_types_round_trip(self, sink, session_factory):
        await sink.upsert([FearGreedReading(timestamp=FIXED_NOW, value=72, classification="Greed")])
        await sink.upsert([GlobalAggregate(
            timestamp=FIXED_NOW, total_market_cap=2.5e12, total_volume_24h=9e10,
            btc_dominance=52.0, eth_dominance=17.0, active_cryptocurrencies=None,
            markets=None, market_cap_change_24h=None, fetched_at=FIXED_NOW,
        )])
        await sink.upsert([TrendingEntry("pepe", "PEPE", "Pepe", 1, 30, FIXED_NOW)])
        await sink.upsert([DeFiProtocolSnapshot(
            name="Lido", chain="Multi-Chain", tvl=3e10, tvl_change_24h=None,
            tvl_change_7d=None, category="Liquid Staking", chains=("Ethereum", "Solana"),
            mcap_tvl=0.07, fetched_at=FIXED_NOW,
        )])
        await sink.upsert([ChainTvlSnapshot("Ethereum", 5.5e10, "ETH", FIXED_NOW)])
        await sink.upsert([YieldPoolSnapshot(
            pool="p-lido", project="lido", chain="Ethereum", symbol="STETH", tvl_usd=2.9e10,
            apy=3.4, apy_base=3.4, apy_reward=None, stablecoin=False, fetched_at=FIXED_NOW,
        )])
        await sink.upsert([OnChainSummary(
            coin="BTC", active_addresses_24h=None, transaction_count_24h=400000,
            avg_transaction_value=2.0, hash_rate=6e11, difficulty=8e13,
            block_height=834000, mempool_size=None, fetched_at=FIXED_NOW,
        )])

        with session_factory() as session:
            assert session.scalar(select(FearGreedRecord.value)) == 72
            assert session.scalar(select(GlobalMetricsRecord.btc_dominance)) == 52.0
            assert session.get(TrendingCoinRecord, "pepe").market_cap_rank == 30
            assert session.get(DeFiProtocolRecord, "Lido").chains == ["Ethereum", "Solana"]
            assert session.get(ChainTvlRecord, "Ethereum").token_symbol == "ETH"
            pool = session.get(YieldPoolRecord, "p-lido")
            assert pool.apy == 3.4
            assert pool.stablecoin is False
            onchain = session.get(OnChainMetricsRecord, "BTC")
            assert onchain.block_height == 834000
            assert onchain.active_addresses_24h is None

    @pytest.mark.asyncio
    async def test_fear_greed_keyed_by_timestamp(self, sink, session_factory):
        day = FearGreedReading(timestamp=FIXED_NOW, value=40, classification="Fear")
        revised = FearGreedReading(timestamp=FIXED_NOW, value=45, classification="Fear")
        next_day = FearGreedReading(timestamp=FIXED_NOW + timedelta(days=1), value=60, classification="Greed")

        await sink.upsert([day])
        await sink.upsert([revised, next_day])

        with session_factory() as session:
            values = session.scalars(select(FearGreedRecord.value).order_by(FearGreedRecord.timestamp)).all()
        assert values == [45, 60]


# ============================================================
# CHUNK INDEX
# ============================================================

class TestIndexChunks:
    """Tests for the append-only index."""

    @pytest.mark.asyncio
    async def test_append_only(self, sink, session_factory):
        assert await sink.index_chunks([chunk(), chunk("ETH is flat", coin_symbol="ETH")]) == 2
        assert await sink.index_chunks([chunk()]) == 1

        assert count(session_factory, DataChunkRecord) == 3

    @pytest.mark.asyncio
    async def test_columns_and_metadata(self, sink, session_factory):
        await sink.index_chunks([chunk(metadata={"rank": 1})])

        with session_factory() as session:
            row = session.scalars(select(DataChunkRecord)).one()
            assert row.content_type == "market_summary"
            assert row.category_path == "market/btc"
            assert row.source == "coingecko"
            assert row.chunk_metadata == {"rank": 1}
            assert row.created_at is not None

    @pytest.mark.asyncio
    async def test_empty(self, sink):
        assert await sink.index_chunks([]) == 0


# ============================================================
# DEGRADED AND FAILING STORE
# ============================================================

class TestStorageModes:
    """Tests for unconfigured and failing stores."""

    @pytest.mark.asyncio
    async def test_degraded_mode_is_noop(self):
        sink = PersistenceSink(None)

        assert not sink.is_configured
        assert await sink.upsert([make_snapshot()]) == 0
        assert await sink.index_chunks([chunk()]) == 0

    @pytest.mark.asyncio
    async def test_degraded_mode_still_validates(self):
        with pytest.raises(ValueError):
            await PersistenceSink(None).upsert([make_snapshot()], natural_key="name")

    @pytest.mark.asyncio
    async def test_from_env_without_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert not PersistenceSink.from_env().is_configured

    @pytest.mark.asyncio
    async def test_write_failure_raises(self):
        # No tables created
        engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        sink = PersistenceSink(sessionmaker(bind=engine))

        with pytest.raises(StorageWriteError) as exc_info:
            await sink.upsert([make_snapshot()])
        assert exc_info.value.table == "market_data"

        with pytest.raises(StorageWriteError) as exc_info:
            await sink.index_chunks([chunk()])
        assert exc_info.value.table == "data_chunks"
        engine.dispose()
