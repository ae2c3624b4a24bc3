# src/cbcloud/core/metrics.py
import threading
from collections import deque
from typing import Deque, Optional

from pydantic import BaseModel

# Latency percentiles are computed over this many most recent requests
WINDOW_SIZE = 1000


class ResponseTimes(BaseModel):
    average_ms: float
    p95_ms: float
    p99_ms: float


class RequestMetricsSnapshot(BaseModel):
    total_requests: int
    server_errors: int
    client_errors: int
    error_rate: float
    response_time: ResponseTimes


def _percentile(ordered: list[float], fraction: float) -> float:
    if not ordered:
        return 0.0
    index = min(len(ordered) - 1, int(round(fraction * (len(ordered) - 1))))
    return ordered[index]


class RequestMetrics:
    """In-process request counters fed by the HTTP middleware in ``main``."""

    def __init__(self, window: int = WINDOW_SIZE) -> None:
        self._lock = threading.Lock()
        self._durations: Deque[float] = deque(maxlen=window)
        self.total = 0
        self.server_errors = 0
        self.client_errors = 0

    def record(self, status_code: int, duration_ms: float) -> None:
        with self._lock:
            self.total += 1
            if status_code >= 500:
                self.server_errors += 1
            elif status_code >= 400:
                self.client_errors += 1
            self._durations.append(duration_ms)

    def snapshot(self) -> RequestMetricsSnapshot:
        with self._lock:
            ordered = sorted(self._durations)
            total = self.total
            server_errors = self.server_errors
            client_errors = self.client_errors
        average = sum(ordered) / len(ordered) if ordered else 0.0
        return RequestMetricsSnapshot(
            total_requests=total,
            server_errors=server_errors,
            client_errors=client_errors,
            error_rate=round(server_errors / total, 4) if total else 0.0,
            response_time=ResponseTimes(
                average_ms=round(average, 2),
                p95_ms=round(_percentile(ordered, 0.95), 2),
                p99_ms=round(_percentile(ordered, 0.99), 2),
            ),
        )


_metrics: Optional[RequestMetrics] = None


def get_metrics() -> RequestMetrics:
    """Process-wide recorder; FastAPI dependency for the metrics endpoint."""
    global _metrics
    if _metrics is None:
        _metrics = RequestMetrics()
    return _metrics
