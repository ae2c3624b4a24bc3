# src/cbcloud/domains/system/service.py
import platform
import time

from cbcloud.core.database import Database
from cbcloud.core.metrics import RequestMetrics
from cbcloud.core.realtime import RoomHub
from cbcloud.core.settings import settings
from cbcloud.domains.products.models import ProductStatus
from cbcloud.domains.system.models import (
    CountStats,
    DatabaseStatus,
    EntryCountStats,
    HealthResponse,
    RealtimeStatus,
    RuntimeInfo,
    SystemInfoResponse,
    SystemMetricsResponse,
    SystemStatsResponse,
    SystemStatusResponse,
)
from cbcloud.shared.timeutils import utcnow

_STARTED = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - _STARTED, 3)


def health() -> HealthResponse:
    return HealthResponse(
        timestamp=utcnow(),
        uptime_seconds=uptime_seconds(),
        environment=settings.ENVIRONMENT,
    )


class SystemService:
    def __init__(self, db: Database):
        self.db = db

    def get_status(self, hub: RoomHub) -> SystemStatusResponse:
        connected = self.db.is_connected()
        operational = "operational" if connected else "degraded"
        return SystemStatusResponse(
            timestamp=utcnow(),
            uptime_seconds=uptime_seconds(),
            database=DatabaseStatus(connected=connected),
            realtime=RealtimeStatus(rooms=hub.room_count, connections=hub.connection_count),
            services={
                "auth": operational,
                "clipboard": operational,
                "sharing": operational,
                "realtime": "operational",
            },
        )

    async def get_stats(self) -> SystemStatsResponse:
        users = await self.db.user.count()
        active_users = await self.db.user.count(where={"isActive": True})
        products = await self.db.product.count()
        active_products = await self.db.product.count(
            where={"status": ProductStatus.ACTIVE.value}
        )
        entries = await self.db.clipboardentry.count()
        archived = await self.db.clipboardentry.count(where={"isArchived": True})
        return SystemStatsResponse(
            timestamp=utcnow(),
            users=CountStats(total=users, active=active_users, inactive=users - active_users),
            products=CountStats(
                total=products, active=active_products, inactive=products - active_products
            ),
            clipboard=EntryCountStats(total_entries=entries, archived_entries=archived),
        )

    async def get_info(self) -> SystemInfoResponse:
        return SystemInfoResponse(
            version=settings.APP_VERSION,
            timestamp=utcnow(),
            uptime_seconds=uptime_seconds(),
            statistics=await self.get_stats(),
            runtime=RuntimeInfo(
                python_version=platform.python_version(),
                platform=platform.system().lower(),
                arch=platform.machine(),
                environment=settings.ENVIRONMENT,
            ),
        )


def get_metrics_report(metrics: RequestMetrics, hub: RoomHub) -> SystemMetricsResponse:
    """Request counters and latency since startup, plus live socket counts."""
    return SystemMetricsResponse(
        timestamp=utcnow(),
        uptime_seconds=uptime_seconds(),
        requests=metrics.snapshot(),
        realtime=RealtimeStatus(rooms=hub.room_count, connections=hub.connection_count),
    )
