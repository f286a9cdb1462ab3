"""
Snapshot and Chunk Repositories.

============================================================
PURPOSE
============================================================
Data access for the sync engine's tables.

- SnapshotRepository: idempotent upsert keyed by the model's
  primary key (the entity's natural key); prune() for tables
  that hold only the latest complete list
- ChunkRepository: append-only inserts into data_chunks

============================================================
UPSERT STRATEGY
============================================================
- PostgreSQL / SQLite: INSERT ... ON CONFLICT DO UPDATE
- Any other dialect:   Session.merge per row

The caller owns the transaction. Database errors are wrapped
in StorageWriteError.

============================================================
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from data_ingestion.exceptions import StorageWriteError
from storage.models.base import Base
from storage.models.data_chunks import DataChunkRecord


T = TypeVar("T", bound=Base)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class _Repository:
    """Session holder with error wrapping."""

    def __init__(self, session: Session, table_name: str) -> None:
        self._session = session
        self._table_name = table_name
        self._logger = logging.getLogger(f"repository.{table_name}")

    @property
    def session(self) -> Session:
        return self._session

    def _handle_db_error(self, error: SQLAlchemyError, operation: str) -> None:
        """
        Raises:
            StorageWriteError: Always
        """
        self._logger.error(f"Database error in {operation}: {error}")
        raise StorageWriteError(
            f"{operation} on {self._table_name} failed: {error}",
            table=self._table_name,
            original_error=error,
        ) from error


class SnapshotRepository(_Repository, Generic[T]):
    """
    Upsert repository for one current-state table.

    Usage:
        repo = SnapshotRepository(session, MarketDataRecord)
        repo.upsert([{"symbol": "BTC", ...}])
    """

    def __init__(self, session: Session, model_class: Type[T]) -> None:
        super().__init__(session, model_class.__tablename__)
        self._model_class = model_class
        primary_key = model_class.__table__.primary_key.columns
        self._key_columns = [c.name for c in primary_key]

    @property
    def key_columns(self) -> List[str]:
        return list(self._key_columns)

    def upsert(self, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Insert rows, overwriting existing rows with the same key.

        Returns:
            Number of rows written
        """
        if not rows:
            return 0

        dialect = self._session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)

        try:
            if insert is not None:
                stmt = insert(self._model_class).values(list(rows))
                updatable = [
                    c.name for c in self._model_class.__table__.columns
                    if c.name not in self._key_columns and c.name != "created_at"
                    and c.name in rows[0]
                ]
                set_ = {name: stmt.excluded[name] for name in updatable}
                if "updated_at" in self._model_class.__table__.columns:
                    # ON CONFLICT updates do not fire Python-side onupdate
                    set_["updated_at"] = func.now()
                stmt = stmt.on_conflict_do_update(
                    index_elements=self._key_columns,
                    set_=set_,
                )
                self._session.execute(stmt)
            else:
                for row in rows:
                    self._session.merge(self._model_class(**row))
                self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "upsert")

        self._logger.debug(f"Upserted {len(rows)} rows ({dialect})")
        return len(rows)

    def prune(self, keep_keys: Sequence[Any]) -> int:
        """
        Delete every row whose key is not in keep_keys.

        Args:
            keep_keys: Key values of the rows that stay

        Returns:
            Number of rows deleted
        """
        if len(self._key_columns) != 1:
            raise ValueError(f"prune needs a single-column key on {self._table_name}")
        key_column = self._model_class.__table__.columns[self._key_columns[0]]

        stmt = delete(self._model_class)
        if keep_keys:
            stmt = stmt.where(key_column.not_in(list(keep_keys)))
        try:
            result = self._session.execute(
                stmt.execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self._handle_db_error(e, "prune")

        removed = result.rowcount or 0
        if removed:
            self._logger.debug(f"Pruned {removed} rows missing from the latest list")
        return removed

    def get(self, key: Any) -> Optional[T]:
        return self._session.get(self._model_class, key)

    def count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(self._model_class)) or 0


class ChunkRepository(_Repository):
    """Append-only writer for data_chunks."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, DataChunkRecord.__tablename__)

    def append(self, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        try:
            self._session.add_all([DataChunkRecord(**row) for row in rows])
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "append")
        return len(rows)

    def count(self) -> int:
        return self._session.scalar(select(func.count()).select_from(DataChunkRecord)) or 0
