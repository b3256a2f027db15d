"""eventbench — load, benchmark and conformance testing for the event store."""

from __future__ import annotations

from eventbench.engine.phase import PhaseRunner, run_phase
from eventbench.engine.reservoir import LatencyReservoir
from eventbench.engine.settling import SettlingTimeProber
from eventbench.engine.suites import SuiteConfig, run_suites
from eventbench.engine.worker import ConnectionMode, WorkerOutcome
from eventbench.metrics.aggregator import percentile, summarize
from eventbench.transport.client import StoreClient

__version__ = "0.1.0"

__all__ = [
    "ConnectionMode",
    "LatencyReservoir",
    "PhaseRunner",
    "SettlingTimeProber",
    "StoreClient",
    "SuiteConfig",
    "WorkerOutcome",
    "percentile",
    "run_phase",
    "run_suites",
    "summarize",
]
