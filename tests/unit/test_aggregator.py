"""Tests for percentile computation and phase summaries."""

from __future__ import annotations

import numpy as np
import pytest

from eventbench.engine.reservoir import LatencyReservoir
from eventbench.engine.worker import WorkerOutcome
from eventbench.metrics.aggregator import latency_profile, percentile, summarize
from eventbench.metrics.models import LatencyProfile


def _outcome(worker_id: int, latencies: list[float], errors: int = 0, limits: int = 0) -> WorkerOutcome:
    outcome = WorkerOutcome(worker_id=worker_id, reservoir=LatencyReservoir(1_000))
    for latency in latencies:
        outcome.record_success(latency)
    outcome.error_count = errors
    outcome.client_limit_count = limits
    return outcome


class TestPercentile:
    def test_empty_is_zero(self):
        assert percentile(np.empty(0), 0.99) == 0.0

    def test_nearest_rank_without_interpolation(self):
        arr = np.arange(1, 101, dtype=np.float64)
        assert percentile(arr, 0.50) == 51.0
        assert percentile(arr, 0.90) == 91.0
        assert percentile(arr, 0.99) == 100.0

    def test_index_clamped_to_last_sample(self):
        arr = np.array([1.0, 2.0, 3.0])
        assert percentile(arr, 1.0) == 3.0

    def test_single_sample(self):
        arr = np.array([7.5])
        for p in (0.0, 0.5, 0.99, 1.0):
            assert percentile(arr, p) == 7.5


class TestLatencyProfile:
    def test_empty_samples_are_all_zero(self):
        assert latency_profile([]) == LatencyProfile()

    def test_converts_seconds_to_milliseconds(self):
        profile = latency_profile([0.003, 0.001, 0.002])
        assert profile.p50 == pytest.approx(2.0)
        assert profile.max == pytest.approx(3.0)

    def test_percentiles_are_monotonic(self):
        rng = np.random.default_rng(3)
        profile = latency_profile(rng.exponential(0.005, size=2_000).tolist())
        assert profile.p50 <= profile.p90 <= profile.p95 <= profile.p99 <= profile.max


class TestSummarize:
    def test_totals_and_rps(self):
        workers = [
            _outcome(0, [0.001] * 30, errors=2),
            _outcome(1, [0.002] * 20, errors=1, limits=4),
        ]
        result = summarize("Ingest", workers, duration_seconds=5.0)

        agg = result.aggregate
        assert agg.total_ok == 50
        assert agg.total_err == 3
        assert agg.total_client_limit == 4
        assert agg.total_rps == pytest.approx(10.0)

    def test_merges_all_reservoirs(self):
        workers = [_outcome(0, [0.001] * 10), _outcome(1, [0.009] * 10)]
        result = summarize("Query", workers, duration_seconds=1.0)
        assert result.aggregate.latency.max == pytest.approx(9.0)
        assert result.aggregate.latency.p50 == pytest.approx(9.0)

    def test_rows_ordered_by_worker_id(self):
        workers = [_outcome(2, [0.001]), _outcome(0, [0.001]), _outcome(1, [0.001])]
        result = summarize("Mixed", workers, duration_seconds=1.0)
        assert [row.worker_id for row in result.workers] == [0, 1, 2]

    def test_worker_row_counts_client_limits_as_errors(self):
        result = summarize("Storm", [_outcome(0, [0.001], errors=1, limits=2)], 1.0)
        row = result.workers[0]
        assert row.err == 1
        assert row.client_limit == 2
        assert row.total_errors == 3

    def test_no_workers(self):
        result = summarize("Empty", [], duration_seconds=1.0)
        assert result.aggregate.total_ok == 0
        assert result.aggregate.latency == LatencyProfile()

    def test_settling_recorded(self):
        result = summarize("Ingest", [_outcome(0, [0.001])], 1.0, settling_time=0.25)
        assert result.settling_ms == pytest.approx(250.0)
        assert result.settling_error is None

        data = result.to_dict()
        assert data["settling_ms"] == pytest.approx(250.0)
        assert data["aggregate"]["total_ok"] == 1

    def test_settling_failure_recorded(self):
        result = summarize("Ingest", [_outcome(0, [0.001])], 1.0, settling_error="timeout")
        assert result.settling_ms is None
        assert result.settling_error == "timeout"
