# src/cbcloud/domains/system/models.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from cbcloud.core.metrics import RequestMetricsSnapshot


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: datetime
    uptime_seconds: float
    environment: str


class DatabaseStatus(BaseModel):
    connected: bool


class RealtimeStatus(BaseModel):
    rooms: int
    connections: int


class SystemStatusResponse(BaseModel):
    timestamp: datetime
    uptime_seconds: float
    database: DatabaseStatus
    realtime: RealtimeStatus
    services: dict[str, str]


class CountStats(BaseModel):
    total: int
    active: int
    inactive: int


class EntryCountStats(BaseModel):
    total_entries: int
    archived_entries: int


class SystemStatsResponse(BaseModel):
    timestamp: datetime
    users: CountStats
    products: CountStats
    clipboard: EntryCountStats


class RuntimeInfo(BaseModel):
    python_version: str
    platform: str
    arch: str
    environment: str


class SystemInfoResponse(BaseModel):
    version: str
    timestamp: datetime
    uptime_seconds: float
    statistics: SystemStatsResponse
    runtime: RuntimeInfo


class SystemMetricsResponse(BaseModel):
    timestamp: datetime
    uptime_seconds: float
    requests: RequestMetricsSnapshot
    realtime: RealtimeStatus
