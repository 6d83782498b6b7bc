"""
Warehouse Models

Archived snapshots are stored in long format, one row per stat:

    stat_snapshots(dimension, entity, kind, stat, value, boundary, archived_at)

Rows are partitioned logically by (dimension, entity, boundary). The table is
append-only; a retried archive cycle may add duplicate rows for the same
boundary, so consumers deduplicate on (dimension, entity, kind, stat,
boundary).
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from statshub.stats.models import MAX_DIMENSION_LENGTH, MAX_NAME_LENGTH


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class StatKind(str, Enum):
    """Stat merge semantics"""
    COUNTER = "counter"
    GAUGE = "gauge"
    PRESENCE = "presence"


class StatSnapshotRow(Base):
    """
    Snapshot Fact Table

    One stat value of one entity at one archive boundary. ``boundary`` is
    stored as naive UTC.
    """
    __tablename__ = "stat_snapshots"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    dimension: Mapped[str] = mapped_column(String(MAX_DIMENSION_LENGTH), nullable=False)
    entity: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    kind: Mapped[StatKind] = mapped_column(SQLEnum(StatKind), nullable=False)
    stat: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    boundary: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Audit
    archived_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_stat_snapshots_partition", "dimension", "entity", "boundary"),
        Index("ix_stat_snapshots_boundary", "boundary"),
    )
