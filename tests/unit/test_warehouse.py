"""
Unit Tests - Warehouse Writer
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from statshub.config import WarehouseSettings
from statshub.database.connection import (
    check_warehouse_health,
    create_session_factory,
    create_warehouse_engine,
)
from statshub.database.models import StatKind, StatSnapshotRow
from statshub.database.warehouse import SQLWarehouseWriter
from statshub.errors import WarehouseError
from statshub.stats.models import Snapshot, StatsBundle

BOUNDARY = datetime(2024, 5, 1, 12, 10, tzinfo=timezone.utc)


async def fetch_rows(engine):
    async with create_session_factory(engine)() as session:
        result = await session.execute(
            select(StatSnapshotRow).order_by(StatSnapshotRow.kind, StatSnapshotRow.stat)
        )
        return result.scalars().all()


class TestSQLWarehouseWriter:
    """Tests for SQLWarehouseWriter"""

    async def test_writes_one_row_per_stat(self, warehouse_engine):
        """Test long-format rows labelled with the boundary"""
        writer = SQLWarehouseWriter(warehouse_engine)
        snapshot = Snapshot(
            dimension="fallback",
            entity="fb-1",
            stats=StatsBundle(counter={"bytes": 10, "reqs": 2}, gauge={"conns": -3}),
            boundary=BOUNDARY,
        )

        written = await writer.write(snapshot)
        rows = await fetch_rows(warehouse_engine)

        assert written == 3
        assert [(r.kind, r.stat, r.value) for r in rows] == [
            (StatKind.COUNTER, "bytes", 10),
            (StatKind.COUNTER, "reqs", 2),
            (StatKind.GAUGE, "conns", -3),
        ]
        assert {(r.dimension, r.entity) for r in rows} == {("fallback", "fb-1")}
        assert {r.boundary for r in rows} == {datetime(2024, 5, 1, 12, 10)}

    async def test_boundary_is_stored_as_utc(self, warehouse_engine):
        """Test aware boundaries in other offsets are normalised"""
        writer = SQLWarehouseWriter(warehouse_engine)
        boundary = BOUNDARY.astimezone(timezone(timedelta(hours=2)))

        await writer.write(Snapshot("user", "42", StatsBundle(presence={"online": 1}), boundary))

        rows = await fetch_rows(warehouse_engine)
        assert rows[0].boundary == datetime(2024, 5, 1, 12, 10)

    async def test_duplicate_writes_append(self, warehouse_engine):
        """Test the table is append-only"""
        writer = SQLWarehouseWriter(warehouse_engine)
        snapshot = Snapshot("country", "ES", StatsBundle(counter={"c": 1}), BOUNDARY)

        await writer.write(snapshot)
        await writer.write(snapshot)

        assert len(await fetch_rows(warehouse_engine)) == 2

    async def test_empty_snapshot(self, warehouse_engine):
        """Test an entity without stats writes nothing"""
        writer = SQLWarehouseWriter(warehouse_engine)

        assert await writer.write(Snapshot("user", "1", StatsBundle(), BOUNDARY)) == 0
        assert await fetch_rows(warehouse_engine) == []

    async def test_failure_raises_warehouse_error(self):
        """Test database errors surface as retryable WarehouseError"""
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        writer = SQLWarehouseWriter(engine)
        try:
            with pytest.raises(WarehouseError) as excinfo:
                await writer.write(Snapshot("user", "1", StatsBundle(counter={"c": 1}), BOUNDARY))
            assert excinfo.value.retryable
        finally:
            await engine.dispose()


class TestConnection:
    """Tests for engine helpers"""

    async def test_health_check(self, warehouse_engine):
        """Test a reachable warehouse is healthy"""
        health = await check_warehouse_health(warehouse_engine)

        assert health["status"] == "healthy"
        assert "latency_ms" in health

    def test_engine_requires_url(self):
        """Test missing configuration"""
        with pytest.raises(ValueError):
            create_warehouse_engine(WarehouseSettings())
