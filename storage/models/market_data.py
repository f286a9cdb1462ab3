"""
Market Data Domain ORM Models.

============================================================
PURPOSE
============================================================
Current-state tables for the market-wide data domains.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: UPSERTED (one row per natural key)
- Source: CoinGecko, alternative.me
- Consumers: Dashboards, search index, analysis

============================================================
MODELS
============================================================
- MarketDataRecord: Latest snapshot per asset symbol
- FearGreedRecord: One row per daily index reading
- GlobalMetricsRecord: One row per upstream update time
- TrendingCoinRecord: Latest trending position per coin

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, FetchedAtMixin, TimestampMixin


class MarketDataRecord(Base, FetchedAtMixin, TimestampMixin):
    """
    Latest market snapshot per asset.

    Natural key: symbol. Each pass overwrites the previous row.
    """

    __tablename__ = "market_data"

    symbol: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Price
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_change_1h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_change_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_change_7d: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_change_30d: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Size
    market_cap: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    circulating_supply: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_supply: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_supply: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Extremes
    ath: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ath_date: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    atl: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    atl_date: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    last_updated: Mapped[Optional[datetime]] = mapped_column(
        nullable=True,
        comment="Provider's own update time for this asset"
    )

    __table_args__ = (
        Index("idx_market_data_rank", "rank"),
    )


class FearGreedRecord(Base, TimestampMixin):
    """Fear & greed index history. Natural key: timestamp."""

    __tablename__ = "fear_greed_history"

    timestamp: Mapped[datetime] = mapped_column(primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    classification: Mapped[str] = mapped_column(String(32), nullable=False)
    time_until_update: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class GlobalMetricsRecord(Base, FetchedAtMixin, TimestampMixin):
    """Whole-market aggregates. Natural key: upstream update time."""

    __tablename__ = "global_metrics"

    timestamp: Mapped[datetime] = mapped_column(primary_key=True)
    total_market_cap: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_volume_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    btc_dominance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    eth_dominance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    active_cryptocurrencies: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    markets: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    market_cap_change_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class TrendingCoinRecord(Base, FetchedAtMixin, TimestampMixin):
    """Current trending list. Natural key: coin_id; each batch replaces the table."""

    __tablename__ = "trending_coins"

    coin_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    market_cap_rank: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
