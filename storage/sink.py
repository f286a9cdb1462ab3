"""
Storage - Persistence Sink.

============================================================
RESPONSIBILITY
============================================================
Single write path of the sync engine.

- upsert():       idempotent current-state writes keyed by each
                  entity's natural key; list-style types (trending)
                  also drop rows missing from the batch
- index_chunks(): append-only writes to the search index

============================================================
DESIGN PRINCIPLES
============================================================
- One transaction per batch, rolled back on any failure
- Storage not configured => logged no-op returning 0
- Storage configured but failing => StorageWriteError
- Index failures never touch upserted rows

============================================================
"""

import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from data_ingestion.exceptions import StorageWriteError
from data_ingestion.types import (
    ChainTvlSnapshot,
    DataChunk,
    DeFiProtocolSnapshot,
    FearGreedReading,
    GlobalAggregate,
    MarketSnapshot,
    NormalizedEntity,
    OnChainSummary,
    TrendingEntry,
    YieldPoolSnapshot,
    natural_key_of,
    replaces_table,
)
from storage.database import get_session_factory
from storage.models import (
    Base,
    ChainTvlRecord,
    DeFiProtocolRecord,
    FearGreedRecord,
    GlobalMetricsRecord,
    MarketDataRecord,
    OnChainMetricsRecord,
    TrendingCoinRecord,
    YieldPoolRecord,
)
from storage.repositories.snapshots import ChunkRepository, SnapshotRepository


# Exhaustive: every entity type has exactly one table
ENTITY_TABLES: Dict[type, Type[Base]] = {
    MarketSnapshot: MarketDataRecord,
    FearGreedReading: FearGreedRecord,
    GlobalAggregate: GlobalMetricsRecord,
    TrendingEntry: TrendingCoinRecord,
    DeFiProtocolSnapshot: DeFiProtocolRecord,
    ChainTvlSnapshot: ChainTvlRecord,
    YieldPoolSnapshot: YieldPoolRecord,
    OnChainSummary: OnChainMetricsRecord,
}


def entity_to_row(entity: NormalizedEntity) -> Dict[str, Any]:
    """Column values for an entity. Tuples become JSON lists."""
    row = {}
    for f in fields(entity):
        value = getattr(entity, f.name)
        row[f.name] = list(value) if isinstance(value, tuple) else value
    return row


def chunk_to_row(chunk: DataChunk) -> Dict[str, Any]:
    return {
        "content": chunk.content,
        "content_type": chunk.content_type.value,
        "category_path": chunk.category_path,
        "coin_symbol": chunk.coin_symbol,
        "source": chunk.source,
        "data_date": chunk.data_date,
        "chunk_metadata": chunk.metadata,
    }


class PersistenceSink:
    """
    Writes normalized entities and index chunks.

    Usage:
        sink = PersistenceSink.from_env()
        written = await sink.upsert(snapshots)
        indexed = await sink.index_chunks(chunks)
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        """
        Initialize the sink.

        Args:
            session_factory: SQLAlchemy sessionmaker; None => degraded mode
        """
        self._session_factory = session_factory
        self._logger = logging.getLogger("storage.sink")

    @classmethod
    def from_env(cls, database_url: Optional[str] = None) -> "PersistenceSink":
        """Sink bound to DATABASE_URL (or the given URL), degraded when unset."""
        return cls(get_session_factory(database_url))

    @property
    def is_configured(self) -> bool:
        return self._session_factory is not None

    # ---------------------------------------------------------
    # UPSERT PATH
    # ---------------------------------------------------------

    async def upsert(
        self,
        entities: Sequence[NormalizedEntity],
        natural_key: Optional[str] = None,
    ) -> int:
        """
        Idempotently write a batch of same-typed entities.

        Args:
            entities: Batch of one entity type
            natural_key: Expected key name; checked against the entity type

        Returns:
            Number of distinct rows written (0 in degraded mode)

        Raises:
            TypeError: Unknown entity type or mixed types in one batch
            ValueError: natural_key does not match the entity type
            StorageWriteError: Store configured but the write failed
        """
        if not entities:
            return 0

        entity_type = type(entities[0])
        model_class = ENTITY_TABLES.get(entity_type)
        if model_class is None:
            raise TypeError(f"No table for entity type {entity_type.__name__}")
        for entity in entities:
            if type(entity) is not entity_type:
                raise TypeError(
                    f"Mixed entity types in one batch: {entity_type.__name__} "
                    f"and {type(entity).__name__}"
                )
        if natural_key is not None and natural_key != entity_type.natural_key:
            raise ValueError(
                f"{entity_type.__name__} is keyed by '{entity_type.natural_key}', "
                f"not '{natural_key}'"
            )

        rows = self._dedupe(entities)

        if not self.is_configured:
            self._logger.info(
                f"Storage not configured, skipping upsert of {len(rows)} "
                f"{model_class.__tablename__} rows"
            )
            return 0

        try:
            with self._session_factory() as session:
                with session.begin():
                    repo = SnapshotRepository(session, model_class)
                    written = repo.upsert(rows)
                    if replaces_table(entity_type):
                        keys = [row[entity_type.natural_key] for row in rows]
                        pruned = repo.prune(keys)
                        if pruned:
                            self._logger.info(
                                f"Removed {pruned} rows no longer listed from "
                                f"{model_class.__tablename__}"
                            )
        except StorageWriteError:
            raise
        except SQLAlchemyError as e:
            raise StorageWriteError(
                f"Transaction on {model_class.__tablename__} failed: {e}",
                table=model_class.__tablename__,
                original_error=e,
            ) from e

        self._logger.info(f"Upserted {written} rows into {model_class.__tablename__}")
        return written

    def _dedupe(self, entities: Sequence[NormalizedEntity]) -> List[Dict[str, Any]]:
        """Rows for a batch, keeping the first occurrence of each key."""
        rows: List[Dict[str, Any]] = []
        seen: set = set()
        for entity in entities:
            key = natural_key_of(entity)
            if key in seen:
                continue
            seen.add(key)
            rows.append(entity_to_row(entity))

        dropped = len(entities) - len(rows)
        if dropped:
            self._logger.debug(f"Dropped {dropped} duplicate keys from batch")
        return rows

    # ---------------------------------------------------------
    # INDEX PATH
    # ---------------------------------------------------------

    async def index_chunks(self, chunks: Sequence[DataChunk]) -> int:
        """
        Append chunks to the search index in one transaction.

        Returns:
            Number of chunks written (0 in degraded mode)

        Raises:
            StorageWriteError: Store configured but the write failed
        """
        if not chunks:
            return 0

        if not self.is_configured:
            self._logger.info(f"Storage not configured, skipping {len(chunks)} index chunks")
            return 0

        rows = [chunk_to_row(c) for c in chunks]
        try:
            with self._session_factory() as session:
                with session.begin():
                    written = ChunkRepository(session).append(rows)
        except StorageWriteError:
            raise
        except SQLAlchemyError as e:
            raise StorageWriteError(
                f"Index transaction failed: {e}",
                table="data_chunks",
                original_error=e,
            ) from e

        self._logger.info(f"Indexed {written} chunks")
        return written
