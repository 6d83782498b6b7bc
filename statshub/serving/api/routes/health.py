"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from statshub.database.connection import check_warehouse_health
from statshub.errors import StoreError

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]
    archiving: List[str]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Aggregation store connectivity
    - Warehouse connectivity (when archiving)
    - Which dimensions are being archived
    """
    state = request.app.state
    checks = {}
    overall_status = "healthy"

    try:
        await state.store.ping()
        checks["redis"] = {"status": "healthy"}
    except StoreError as e:
        checks["redis"] = {"status": "unhealthy", "error": e.message}
        overall_status = "unhealthy"

    if state.warehouse_engine is not None:
        warehouse_health = await check_warehouse_health(state.warehouse_engine)
        checks["warehouse"] = warehouse_health
        if warehouse_health.get("status") != "healthy" and overall_status == "healthy":
            overall_status = "degraded"

    archiver = state.archiver
    return HealthResponse(
        status=overall_status,
        version=state.settings.version,
        environment=state.settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
        archiving=archiver.running_dimensions if archiver is not None else [],
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Ready once the aggregation store answers; the warehouse only affects
    archival, which is best effort.
    """
    try:
        await request.app.state.store.ping()
    except StoreError as e:
        response.status_code = 503
        return {"status": "not_ready", "reason": e.message}
    return {"status": "ready"}
