"""
Tests for the request metrics recorder.
"""

from cbcloud.core.metrics import RequestMetrics


class TestRequestMetrics:
    def test_empty_snapshot(self):
        snapshot = RequestMetrics().snapshot()

        assert snapshot.total_requests == 0
        assert snapshot.error_rate == 0.0
        assert snapshot.response_time.p99_ms == 0.0

    def test_counts_errors_by_class(self):
        metrics = RequestMetrics()
        for status_code in (200, 201, 404, 500):
            metrics.record(status_code, 10.0)

        snapshot = metrics.snapshot()

        assert snapshot.total_requests == 4
        assert snapshot.client_errors == 1
        assert snapshot.server_errors == 1
        assert snapshot.error_rate == 0.25

    def test_percentiles_use_recent_window(self):
        metrics = RequestMetrics(window=100)
        metrics.record(200, 10_000.0)
        for duration in range(1, 101):
            metrics.record(200, float(duration))

        snapshot = metrics.snapshot()

        assert snapshot.total_requests == 101
        assert snapshot.response_time.average_ms == 50.5
        assert snapshot.response_time.p95_ms == 95.0
        assert snapshot.response_time.p99_ms == 99.0
