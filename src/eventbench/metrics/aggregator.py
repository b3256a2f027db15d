"""Merge per-worker outcomes into phase totals and percentile statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from eventbench._internal.logging import get_logger
from eventbench.metrics.models import (
    AggregateStats,
    LatencyProfile,
    PhaseResult,
    WorkerRow,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from numpy.typing import NDArray

    from eventbench.engine.worker import WorkerOutcome

logger = get_logger("metrics.aggregator")

PERCENTILES = (0.50, 0.90, 0.95, 0.99)


def percentile(sorted_samples: NDArray[np.float64], p: float) -> float:
    """Nearest-rank percentile without interpolation.

    Returns ``sorted_samples[floor(n * p)]`` with the index clamped to
    ``n - 1`` so small samples cannot index past the end.

    Args:
        sorted_samples: Samples sorted ascending.
        p: Fraction between 0.0 and 1.0.

    Returns:
        The sample at that rank, or 0.0 for an empty input.
    """
    n = len(sorted_samples)
    if n == 0:
        return 0.0
    idx = min(int(n * p), n - 1)
    return float(sorted_samples[idx])


def latency_profile(samples: Iterable[float]) -> LatencyProfile:
    """Compute P50/P90/P95/P99/Max in milliseconds from latencies in seconds.

    Args:
        samples: Latencies in seconds, in any order.

    Returns:
        A LatencyProfile; all zeros when ``samples`` is empty.
    """
    arr = np.sort(np.fromiter(samples, dtype=np.float64)) * 1000.0
    if arr.size == 0:
        return LatencyProfile()

    p50, p90, p95, p99 = (percentile(arr, p) for p in PERCENTILES)
    return LatencyProfile(p50=p50, p90=p90, p95=p95, p99=p99, max=float(arr[-1]))


def summarize(
    name: str,
    workers: Sequence[WorkerOutcome],
    duration_seconds: float,
    settling_time: float | None = None,
    settling_error: str | None = None,
) -> PhaseResult:
    """Build the PhaseResult for a finished phase.

    Args:
        name: Phase name.
        workers: Joined worker outcomes.
        duration_seconds: Configured (not measured) phase duration.
        settling_time: Measured index lag in seconds, if any.
        settling_error: Settling probe failure message, if any.

    Returns:
        Immutable phase summary with aggregate and per-worker rows.
    """
    rows: list[WorkerRow] = []
    total_ok = 0
    total_err = 0
    total_limit = 0
    merged: list[NDArray[np.float64]] = []

    for w in sorted(workers, key=lambda o: o.worker_id):
        total_ok += w.success_count
        total_err += w.error_count
        total_limit += w.client_limit_count

        samples = w.reservoir.samples()
        merged.append(np.asarray(samples, dtype=np.float64))
        rows.append(
            WorkerRow(
                worker_id=w.worker_id,
                ok=w.success_count,
                err=w.error_count,
                client_limit=w.client_limit_count,
                latency=latency_profile(samples),
            )
        )

    all_samples = np.concatenate(merged) if merged else np.empty(0, dtype=np.float64)
    rps = total_ok / duration_seconds if duration_seconds > 0 else 0.0

    aggregate = AggregateStats(
        total_ok=total_ok,
        total_err=total_err,
        total_client_limit=total_limit,
        total_rps=rps,
        latency=latency_profile(all_samples),
    )

    logger.debug(
        "Summarized %s: ok=%d, err=%d, limit=%d, rps=%.1f, p99=%.2fms",
        name,
        total_ok,
        total_err,
        total_limit,
        rps,
        aggregate.latency.p99,
    )

    return PhaseResult(
        name=name,
        duration_seconds=duration_seconds,
        aggregate=aggregate,
        workers=tuple(rows),
        settling_time=settling_time,
        settling_error=settling_error,
    )
