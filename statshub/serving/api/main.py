"""
FastAPI Application Factory

Wires the stats service from explicit configuration. The periodic archiver is
only constructed when archiving is enabled and a warehouse target exists;
without one the ingestion path runs on its own.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from statshub.archive.archiver import PeriodicArchiver
from statshub.config import Settings, get_settings
from statshub.config.logging import configure_logging
from statshub.database.connection import create_warehouse_engine, ensure_schema
from statshub.database.warehouse import SQLWarehouseWriter
from statshub.errors import StatsHubError, StoreError
from statshub.ingestion.identity import IdentityProvider, IdentityVerifier, create_identity_provider
from statshub.ingestion.submission import SubmissionProcessor
from statshub.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from statshub.serving.api.routes import health_router, stats_router
from statshub.serving.api.routes.stats import stats_error_handler
from statshub.stats.query import DimensionQueryService
from statshub.stats.store import RedisStatsStore, StatsStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[StatsStore] = None,
    identity_provider: Optional[IdentityProvider] = None,
    warehouse_engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """
    Create and configure the statshub application.

    Args:
        settings: Application settings, loaded from the environment if omitted
        store: Aggregation store, Redis from settings if omitted
        identity_provider: Caller identity source, from settings if omitted
        warehouse_engine: Warehouse engine, built from settings.warehouse.url if omitted

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()
    store = store or RedisStatsStore.from_settings(settings.redis)
    identity_provider = identity_provider or create_identity_provider(settings.auth)
    query_service = DimensionQueryService(store)

    archiver = None
    if settings.archive.enabled and (warehouse_engine is not None or settings.warehouse.url):
        if warehouse_engine is None:
            warehouse_engine = create_warehouse_engine(settings.warehouse)
        archiver = PeriodicArchiver(
            query_service,
            SQLWarehouseWriter(warehouse_engine),
            settings.archive.schedules,
        )
    else:
        logger.info("No warehouse configured, not archiving")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        configure_logging(settings)
        logger.info("Starting statshub", environment=settings.app_env)

        try:
            await store.ping()
            logger.info("Redis connection established")
        except StoreError as e:
            logger.warning("Redis not reachable at startup", error=e.message)

        if archiver is not None:
            if settings.warehouse.create_schema:
                try:
                    await ensure_schema(warehouse_engine)
                except SQLAlchemyError as e:
                    logger.warning("Warehouse schema init failed", error=str(e))
            archiver.start()

        yield

        logger.info("Shutting down...")
        if archiver is not None:
            await archiver.stop(timeout=settings.archive.shutdown_timeout)
        await store.close()
        if warehouse_engine is not None:
            await warehouse_engine.dispose()

    app = FastAPI(
        title="statshub",
        description="Anonymized usage stats ingestion and periodic archival",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.verifier = IdentityVerifier(identity_provider)
    app.state.submission_processor = SubmissionProcessor(store)
    app.state.query_service = query_service
    app.state.archiver = archiver
    app.state.warehouse_engine = warehouse_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(StatsHubError, stats_error_handler)

    app.include_router(stats_router, tags=["Stats"])
    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.mount("/metrics", make_asgi_app())

    return app
