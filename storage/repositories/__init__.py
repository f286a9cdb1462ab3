"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
All database access from the sync engine goes through these
repositories. Sessions are injected by the caller, which owns
the transaction.

- SnapshotRepository: current-state tables, upsert by primary key
- ChunkRepository: append-only search index

============================================================
USAGE
============================================================

    from storage.repositories import SnapshotRepository
    from storage.models import MarketDataRecord

    with session_factory() as session, session.begin():
        SnapshotRepository(session, MarketDataRecord).upsert(rows)

============================================================
"""

from storage.repositories.snapshots import ChunkRepository, SnapshotRepository


__all__ = [
    "SnapshotRepository",
    "ChunkRepository",
]
