"""Result dataclasses handed from the aggregator to the report layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class LatencyProfile:
    """Nearest-rank latency percentiles in milliseconds.

    Attributes:
        p50: 50th percentile latency (ms).
        p90: 90th percentile latency (ms).
        p95: 95th percentile latency (ms).
        p99: 99th percentile latency (ms).
        max: Largest retained latency (ms).
    """

    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    max: float = 0.0


@dataclass(frozen=True)
class WorkerRow:
    """Per-worker breakdown row.

    Attributes:
        worker_id: Worker identity within the phase.
        ok: Successful requests.
        err: Server-side or validation errors.
        client_limit: Local resource exhaustion failures.
        latency: Percentiles over this worker's own reservoir.
    """

    worker_id: int
    ok: int
    err: int
    client_limit: int
    latency: LatencyProfile

    @property
    def total_errors(self) -> int:
        """Return server errors plus client-limit failures."""
        return self.err + self.client_limit


@dataclass(frozen=True)
class AggregateStats:
    """Phase-wide totals and percentiles.

    Attributes:
        total_ok: Sum of worker successes.
        total_err: Sum of worker errors.
        total_client_limit: Sum of worker client-limit failures.
        total_rps: ``total_ok`` divided by the configured duration.
        latency: Percentiles over the union of all reservoirs.
    """

    total_ok: int = 0
    total_err: int = 0
    total_client_limit: int = 0
    total_rps: float = 0.0
    latency: LatencyProfile = field(default_factory=LatencyProfile)


@dataclass(frozen=True)
class PhaseResult:
    """Summary of one completed phase.

    Attributes:
        name: Phase name, e.g. ``"Ingest"``.
        duration_seconds: Configured phase duration.
        aggregate: Totals and merged percentiles.
        workers: One row per worker, ordered by worker id.
        settling_time: Index lag in seconds, None when not measured.
        settling_error: Why the settling probe failed, None otherwise.
    """

    name: str
    duration_seconds: float
    aggregate: AggregateStats
    workers: tuple[WorkerRow, ...] = ()
    settling_time: float | None = None
    settling_error: str | None = None

    @property
    def settling_ms(self) -> float | None:
        """Return the settling time in milliseconds, or None."""
        if self.settling_time is None:
            return None
        return self.settling_time * 1000.0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        data = asdict(self)
        data["settling_ms"] = self.settling_ms
        return data
