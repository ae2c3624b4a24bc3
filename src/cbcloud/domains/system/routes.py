# src/cbcloud/domains/system/routes.py
from fastapi import APIRouter, Depends

from cbcloud.core.database import Database, get_db
from cbcloud.core.metrics import RequestMetrics, get_metrics
from cbcloud.core.realtime import RoomHub, get_hub
from cbcloud.domains.auth.dependencies import require_admin
from cbcloud.domains.system import service
from cbcloud.domains.system.models import (
    HealthResponse,
    SystemInfoResponse,
    SystemMetricsResponse,
    SystemStatsResponse,
    SystemStatusResponse,
)
from cbcloud.domains.system.service import SystemService
from cbcloud.domains.users.models import User

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health", response_model=HealthResponse, operation_id="getSystemHealth")
async def get_health() -> HealthResponse:
    return service.health()


@router.get("/status", response_model=SystemStatusResponse, operation_id="getSystemStatus")
async def get_status(
    user: User = Depends(require_admin),
    db: Database = Depends(get_db),
    hub: RoomHub = Depends(get_hub),
) -> SystemStatusResponse:
    """Database and realtime status. Admin only."""
    return SystemService(db).get_status(hub)


@router.get("/stats", response_model=SystemStatsResponse, operation_id="getSystemStats")
async def get_stats(
    user: User = Depends(require_admin),
    db: Database = Depends(get_db),
) -> SystemStatsResponse:
    return await SystemService(db).get_stats()


@router.get("/info", response_model=SystemInfoResponse, operation_id="getSystemInfo")
async def get_info(
    user: User = Depends(require_admin),
    db: Database = Depends(get_db),
) -> SystemInfoResponse:
    """Version, record counts and runtime details. Admin only."""
    return await SystemService(db).get_info()


@router.get("/metrics", response_model=SystemMetricsResponse, operation_id="getSystemMetrics")
async def get_system_metrics(
    user: User = Depends(require_admin),
    metrics: RequestMetrics = Depends(get_metrics),
    hub: RoomHub = Depends(get_hub),
) -> SystemMetricsResponse:
    return service.get_metrics_report(metrics, hub)
