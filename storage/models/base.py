"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base and common mixins used by all
ORM models of the sync engine.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- FetchedAtMixin: When the row's data was fetched upstream
- TimestampMixin: Row creation / update timestamps

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    Datetimes are timezone-aware and JSON containers map onto the
    portable JSON type so the same models run on PostgreSQL and
    SQLite.
    """

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        Dict[str, Any]: JSON,
        List[str]: JSON,
    }


class FetchedAtMixin:
    """Adds the fetched_at column carried by every upserted snapshot."""

    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the data was fetched from the provider (UTC)"
    )


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Last update timestamp (UTC)"
    )
