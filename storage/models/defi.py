"""
DeFi and On-Chain ORM Models.

============================================================
MODELS
============================================================
- DeFiProtocolRecord: Latest TVL snapshot per protocol
- ChainTvlRecord: Latest TVL per chain
- YieldPoolRecord: Latest yield and TVL per pool
- OnChainMetricsRecord: Latest chain activity per coin

All four are upserted by natural key; metrics the provider
does not expose are stored as NULL.

============================================================
"""

from typing import List, Optional

from sqlalchemy import Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, FetchedAtMixin, TimestampMixin


class DeFiProtocolRecord(Base, FetchedAtMixin, TimestampMixin):
    """DeFi protocol TVL. Natural key: name."""

    __tablename__ = "defi_protocols"

    name: Mapped[str] = mapped_column(String(200), primary_key=True)
    chain: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tvl: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tvl_change_24h: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tvl_change_7d: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    chains: Mapped[List[str]] = mapped_column(
        nullable=False,
        default=list,
        comment="Every chain the protocol is deployed on"
    )
    mcap_tvl: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("idx_defi_protocols_category", "category"),
    )


class ChainTvlRecord(Base, FetchedAtMixin, TimestampMixin):
    """Per-chain TVL. Natural key: name."""

    __tablename__ = "chain_tvl"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    tvl: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    token_symbol: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class YieldPoolRecord(Base, FetchedAtMixin, TimestampMixin):
    """Per-pool yield. Natural key: pool (DefiLlama pool id)."""

    __tablename__ = "yield_pools"

    pool: Mapped[str] = mapped_column(String(100), primary_key=True)
    project: Mapped[str] = mapped_column(String(100), nullable=False)
    chain: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    symbol: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tvl_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    apy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    apy_base: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    apy_reward: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stablecoin: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    __table_args__ = (
        Index("idx_yield_pools_project", "project"),
    )


class OnChainMetricsRecord(Base, FetchedAtMixin, TimestampMixin):
    """Chain-level activity. Natural key: coin."""

    __tablename__ = "onchain_metrics"

    coin: Mapped[str] = mapped_column(String(32), primary_key=True)
    active_addresses_24h: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    transaction_count_24h: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    avg_transaction_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hash_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    difficulty: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    block_height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mempool_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
