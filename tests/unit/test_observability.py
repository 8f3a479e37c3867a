"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from musty.observability import latency_metrics_snapshot
from musty.observability import record_latency
from musty.observability import reset_latency_metrics
from musty.observability import timed


class TestObservabilityLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="tool.posts", duration_ms=10.0, ok=True)
        record_latency(operation="tool.posts", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["tool.posts"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0

    def test_negative_durations_clamp_to_zero(self):
        record_latency(operation="tool.users", duration_ms=-5.0)
        assert latency_metrics_snapshot()["tool.users"]["min_ms"] == 0.0

    def test_timed_records_success(self):
        with timed("query.posts"):
            pass
        metrics = latency_metrics_snapshot()["query.posts"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    def test_timed_records_failure_and_reraises(self):
        with pytest.raises(KeyError):
            with timed("query.post"):
                raise KeyError("boom")
        assert latency_metrics_snapshot()["query.post"]["error_count"] == 1

    def test_reset_clears_all_metrics(self):
        record_latency(operation="mutation.follow", duration_ms=12.0, ok=True)
        assert "mutation.follow" in latency_metrics_snapshot()
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}
