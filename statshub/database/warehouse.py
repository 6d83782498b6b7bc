"""
Warehouse Writer

Appends archived snapshots to durable storage. Writes are not idempotent:
the same (dimension, entity, boundary) written twice yields duplicate rows.
"""

from abc import ABC, abstractmethod
from datetime import timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from statshub.database.connection import create_session_factory
from statshub.database.models import StatKind, StatSnapshotRow
from statshub.errors import WarehouseError
from statshub.stats.models import Snapshot

logger = structlog.get_logger(__name__)


class WarehouseWriter(ABC):
    """Append-only snapshot sink"""

    @abstractmethod
    async def write(self, snapshot: Snapshot) -> int:
        """
        Append one snapshot.

        Returns:
            Number of rows written

        Raises:
            WarehouseError: if the rows could not be stored
        """


class SQLWarehouseWriter(WarehouseWriter):
    """Writes snapshots as rows of ``stat_snapshots``, one transaction each"""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    async def write(self, snapshot: Snapshot) -> int:
        boundary = snapshot.boundary
        if boundary.tzinfo is not None:
            boundary = boundary.astimezone(timezone.utc).replace(tzinfo=None)

        rows = [
            StatSnapshotRow(
                dimension=snapshot.dimension,
                entity=snapshot.entity,
                kind=StatKind(kind),
                stat=stat,
                value=value,
                boundary=boundary,
            )
            for kind, stat, value in snapshot.stats.values()
        ]
        if not rows:
            logger.debug("Empty snapshot, nothing to write", dimension=snapshot.dimension)
            return 0

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add_all(rows)
        except SQLAlchemyError as e:
            logger.error(
                "Warehouse insert failed",
                dimension=snapshot.dimension,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise WarehouseError(f"Unable to write {snapshot.dimension} snapshot: {e}") from e

        return len(rows)
