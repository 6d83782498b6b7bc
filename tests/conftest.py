"""
Test Suite Configuration
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Dict, List, Optional, Set

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from statshub.config import ArchiveSettings, Settings
from statshub.database.connection import ensure_schema
from statshub.database.warehouse import WarehouseWriter
from statshub.errors import WarehouseError
from statshub.stats.models import Snapshot
from statshub.stats.store import RedisStatsStore


class FakeClock:
    """Manually advanced UTC clock whose sleep moves time forward."""

    def __init__(self, start: datetime):
        self.now = start
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[int], None]] = None

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)
        await asyncio.sleep(0)


class RecordingWriter(WarehouseWriter):
    """Warehouse writer that keeps snapshots in memory."""

    def __init__(self, fail_for: Optional[Set[str]] = None):
        self.snapshots: List[Snapshot] = []
        self.fail_for = fail_for or set()

    async def write(self, snapshot: Snapshot) -> int:
        if snapshot.entity in self.fail_for:
            raise WarehouseError(f"insert failed for {snapshot.entity}")
        self.snapshots.append(snapshot)
        return len(list(snapshot.stats.values()))

    def boundaries(self) -> Dict[str, List[datetime]]:
        result: Dict[str, List[datetime]] = {}
        for snapshot in self.snapshots:
            result.setdefault(snapshot.entity, []).append(snapshot.boundary)
        return result


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
        archive=ArchiveSettings(enabled=False),
    )


@pytest.fixture
async def redis_client() -> AsyncGenerator[FakeAsyncRedis, None]:
    """Isolated in-memory Redis"""
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def store(redis_client) -> RedisStatsStore:
    return RedisStatsStore(redis_client, key_prefix="test")


@pytest.fixture
async def warehouse_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite warehouse with the snapshot schema"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 3, 20, tzinfo=timezone.utc))


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()
