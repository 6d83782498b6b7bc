"""
Warehouse Connection Management

Async SQLAlchemy 2.0 engine for the analytics warehouse, with schema
provisioning and health checks.
"""

import time

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from statshub.config import WarehouseSettings
from statshub.database.models import Base

logger = structlog.get_logger(__name__)


def create_warehouse_engine(settings: WarehouseSettings) -> AsyncEngine:
    """
    Create the warehouse engine.

    Raises:
        ValueError: if no warehouse target is configured
    """
    if not settings.url:
        raise ValueError("No warehouse URL configured")

    engine = create_async_engine(
        settings.url,
        echo=settings.echo,
        future=True,
        pool_pre_ping=True,  # Verify connections before use
    )
    logger.info("Warehouse engine created", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the warehouse engine"""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create the snapshot table and indexes if they do not exist"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Warehouse schema ensured")


async def check_warehouse_health(engine: AsyncEngine) -> dict:
    """
    Check warehouse health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
