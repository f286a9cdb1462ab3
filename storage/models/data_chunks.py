"""
Search Index ORM Model.

============================================================
PURPOSE
============================================================
Text chunks derived from normalized entities, consumed by the
retrieval layer.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: APPEND-ONLY
- Source: Chunk normalizer (live passes and backfill)
- Consumers: Retrieval / question answering

============================================================
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base


class DataChunkRecord(Base):
    """One derived text chunk."""

    __tablename__ = "data_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    category_path: Mapped[str] = mapped_column(String(200), nullable=False)
    coin_symbol: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    data_date: Mapped[datetime] = mapped_column(nullable=False)

    # "metadata" is reserved on declarative classes
    chunk_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata",
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_data_chunks_category", "category_path"),
        Index("idx_data_chunks_coin_date", "coin_symbol", "data_date"),
    )
