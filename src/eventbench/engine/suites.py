"""Suite orchestration: phase sequences, health gating and settling probes."""

from __future__ import annotations

import functools
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, ClassVar

from eventbench._internal.errors import (
    ConfigError,
    EventBenchError,
    PhaseHealthError,
    SettlingTimeoutError,
    TransportError,
)
from eventbench._internal.logging import get_logger
from eventbench.conformance.framework import run_test_cases
from eventbench.conformance.suites import CONFORMANCE_SUITES, build_cases
from eventbench.conformance.validators import expect_objects, expect_ok
from eventbench.engine.health import check_health
from eventbench.engine.phase import PhaseRunner
from eventbench.engine.reservoir import DEFAULT_CAPACITY
from eventbench.engine.settling import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    SettlingTimeProber,
)
from eventbench.engine.worker import ConnectionMode
from eventbench.metrics.aggregator import summarize
from eventbench.transport.client import DEFAULT_TIMEOUT, StoreClient
from eventbench.workloads.generators import (
    complex_payload_generator,
    connection_storm_generator,
    ingest_generator,
    mixed_generator,
    query_generator,
    unique_namespace,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from eventbench._internal.types import CommandGenerator, Validator
    from eventbench.metrics.models import PhaseResult

logger = get_logger("engine.suites")

MODES = ("load", "bench", "e2e")

_BENCH_LOCATIONS = ("aws-us-east", "aws-us-west", "gcp-eu-west")


@dataclass(frozen=True)
class SuiteConfig:
    """Everything a suite needs to run.

    Attributes:
        mode: ``load``, ``bench`` or ``e2e``.
        address: ``host:port`` of the event store.
        suites: Suite name filter; empty or ``("all",)`` runs everything.
        workers: Concurrent workers per phase.
        duration_seconds: Length of each phase.
        timeout: Per-call deadline for connect, send and receive.
        reservoir_size: Latency samples retained per worker.
        settling_interval: Seconds between settling polls.
        settling_max_attempts: Settling polls before timing out.
    """

    mode: str = "load"
    address: str = "127.0.0.1:7878"
    suites: tuple[str, ...] = ("all",)
    workers: int = 20
    duration_seconds: float = 5.0
    timeout: float = DEFAULT_TIMEOUT
    reservoir_size: int = DEFAULT_CAPACITY
    settling_interval: float = DEFAULT_POLL_INTERVAL
    settling_max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def client_factory(self) -> Callable[[], Awaitable[StoreClient]]:
        """Return a zero-argument coroutine factory connecting to ``address``."""
        return functools.partial(StoreClient.connect, self.address, timeout=self.timeout)


class HealthPolicy(Enum):
    """How a phase's health check affects the suite."""

    STRICT = auto()  # any failure aborts the suite
    LENIENT = auto()  # only zero successes aborts; high error rate is a warning
    OFF = auto()


@dataclass(frozen=True)
class PhaseSpec:
    """Declarative description of one load phase.

    Attributes:
        name: Phase name used in logs and reports.
        generator: Command generator for every worker.
        validator: Optional response validator.
        mode: Persistent or churn connections.
        measure_settling: Probe index lag after the phase.
        health: Health gating policy.
    """

    name: str
    generator: CommandGenerator
    validator: Validator | None = None
    mode: ConnectionMode = ConnectionMode.PERSISTENT
    measure_settling: bool = False
    health: HealthPolicy = HealthPolicy.STRICT


@dataclass
class SuiteRun:
    """Outcome of one suite.

    Attributes:
        name: Suite name.
        passed: False when the suite raised.
        elapsed_seconds: Wall-clock suite duration.
        results: Phase results in execution order (empty for e2e suites).
        error: Failure message when ``passed`` is False.
    """

    name: str
    passed: bool
    elapsed_seconds: float
    results: list[PhaseResult] = field(default_factory=list)
    error: str | None = None


def should_run(name: str, requested: Sequence[str]) -> bool:
    """Return True if suite ``name`` matches the ``requested`` filter.

    An empty filter, ``all`` or an empty first entry selects every suite.
    Otherwise any requested entry that is a case-insensitive substring of
    ``name`` selects it.
    """
    if not requested or requested[0] in ("all", ""):
        return True
    lowered = name.lower()
    return any(req.strip().lower() in lowered for req in requested if req.strip())


async def measure_settling(config: SuiteConfig, namespace: str) -> tuple[float | None, str | None]:
    """Run a settling probe, converting failures into a reportable message.

    Returns:
        ``(seconds, None)`` on success or ``(None, message)`` on failure.
    """
    prober = SettlingTimeProber(
        config.client_factory(),
        namespace,
        interval=config.settling_interval,
        max_attempts=config.settling_max_attempts,
    )
    logger.info("Measuring index lag (settling time)...")
    try:
        settling = await prober.measure()
    except (SettlingTimeoutError, TransportError) as exc:
        logger.warning("Settling time measurement failed: %s", exc)
        return None, str(exc)
    logger.info("Settling time: %.1fms", settling * 1000)
    return settling, None


async def execute_phase(config: SuiteConfig, spec: PhaseSpec, namespace: str) -> PhaseResult:
    """Run one phase, apply its health policy and summarize it.

    Raises:
        PhaseHealthError: When the phase fails its health policy.
    """
    logger.info(
        "Running [%s] (%d workers, %.0fs, %s)",
        spec.name,
        config.workers,
        config.duration_seconds,
        spec.mode.value,
        extra={"phase": spec.name},
    )
    runner = PhaseRunner(
        config.address,
        timeout=config.timeout,
        reservoir_size=config.reservoir_size,
        name=spec.name,
    )
    outcomes = await runner.run(
        config.workers,
        config.duration_seconds,
        spec.generator,
        spec.validator,
        spec.mode,
    )

    if spec.health is HealthPolicy.STRICT:
        check_health(spec.name, outcomes, ignore_client_limits=False)
    elif spec.health is HealthPolicy.LENIENT:
        try:
            check_health(spec.name, outcomes, ignore_client_limits=True)
        except PhaseHealthError as exc:
            if sum(o.success_count for o in outcomes) == 0:
                raise
            logger.warning(
                "Server actively failed connections: %s", exc, extra={"phase": spec.name}
            )

    client_limits = sum(o.client_limit_count for o in outcomes)
    if client_limits > 0:
        logger.warning(
            "Test setup warning: client exhausted local resources %d times "
            "(a client-side limit, not a service failure)",
            client_limits,
            extra={"phase": spec.name},
        )

    settling: float | None = None
    settling_error: str | None = None
    if spec.measure_settling:
        settling, settling_error = await measure_settling(config, namespace)

    return summarize(
        spec.name,
        outcomes,
        config.duration_seconds,
        settling_time=settling,
        settling_error=settling_error,
    )


class Suite(ABC):
    """A named unit of work selected by the suite filter."""

    name: str = ""

    @abstractmethod
    async def run(self, config: SuiteConfig) -> list[PhaseResult]:
        """Run the suite.

        Returns:
            Phase results for load suites, an empty list otherwise.

        Raises:
            EventBenchError: When the suite fails.
        """


class PhasedSuite(Suite):
    """A suite made of sequential load phases in one namespace."""

    namespace_prefix: ClassVar[str] = "bench"

    @abstractmethod
    def phases(self, namespace: str) -> list[PhaseSpec]:
        """Return the phases to run, in order."""

    async def run(self, config: SuiteConfig) -> list[PhaseResult]:
        namespace = unique_namespace(self.namespace_prefix)
        results: list[PhaseResult] = []
        for spec in self.phases(namespace):
            results.append(await execute_phase(config, spec, namespace))
        return results


class LoadPerformanceSuite(PhasedSuite):
    """Health-gated ingest, query, mixed, complex and connection-storm phases."""

    name = "load"

    def phases(self, namespace: str) -> list[PhaseSpec]:
        write = ingest_generator(namespace)
        read = query_generator(namespace, take=5)
        return [
            PhaseSpec("Ingest", write, expect_ok, measure_settling=True),
            PhaseSpec("Query", read, expect_objects),
            PhaseSpec("Mixed", mixed_generator(write, read)),
            PhaseSpec("Complex", complex_payload_generator(namespace), expect_ok),
            PhaseSpec(
                "ConnStorm",
                connection_storm_generator(namespace),
                mode=ConnectionMode.CHURN,
                health=HealthPolicy.LENIENT,
            ),
        ]


class BenchmarkSuite(PhasedSuite):
    """Standardized benchmark phases without health gating."""

    name = "bench"
    namespace_prefix = "bench_v1"

    def phases(self, namespace: str) -> list[PhaseSpec]:
        write = ingest_generator(namespace, locations=_BENCH_LOCATIONS)
        read = query_generator(namespace, take=10, miss_ratio=0.0, locations=_BENCH_LOCATIONS)
        return [
            PhaseSpec(
                "v1_100%_Ingest",
                write,
                expect_ok,
                measure_settling=True,
                health=HealthPolicy.OFF,
            ),
            PhaseSpec("v1_100%_Query", read, health=HealthPolicy.OFF),
            PhaseSpec(
                "v1_50%_Mixed",
                mixed_generator(write, read),
                measure_settling=True,
                health=HealthPolicy.OFF,
            ),
            PhaseSpec(
                "v1_Complex_Payload",
                complex_payload_generator(namespace),
                expect_ok,
                measure_settling=True,
                health=HealthPolicy.OFF,
            ),
        ]


class ConformanceSuite(Suite):
    """One retry-driven correctness suite run over a single connection."""

    def __init__(self, name: str) -> None:
        if name not in CONFORMANCE_SUITES:
            msg = f"Unknown conformance suite: {name}"
            raise ConfigError(msg)
        self.name = name

    async def run(self, config: SuiteConfig) -> list[PhaseResult]:
        async with await StoreClient.connect(config.address, timeout=config.timeout) as client:
            await run_test_cases(client, build_cases(self.name))
        return []


def suites_for_mode(mode: str) -> list[Suite]:
    """Return the suites available in ``mode``.

    Raises:
        ConfigError: If ``mode`` is not one of ``load``, ``bench`` or ``e2e``.
    """
    if mode == "load":
        return [LoadPerformanceSuite()]
    if mode == "bench":
        return [BenchmarkSuite()]
    if mode == "e2e":
        return [ConformanceSuite(name) for name in CONFORMANCE_SUITES]
    msg = f"Invalid mode: {mode!r}. Choose from: {', '.join(MODES)}"
    raise ConfigError(msg)


async def run_suites(config: SuiteConfig, suites: Sequence[Suite] | None = None) -> list[SuiteRun]:
    """Run every suite selected by ``config.suites``.

    Suite failures are logged and recorded rather than raised, so one
    failing suite does not prevent the others from running.

    Args:
        config: Run configuration.
        suites: Suites to choose from. Defaults to ``suites_for_mode(config.mode)``.

    Returns:
        One SuiteRun per selected suite, in order.
    """
    candidates = list(suites) if suites is not None else suites_for_mode(config.mode)
    logger.info("Starting %s run against %s", config.mode.upper(), config.address)

    runs: list[SuiteRun] = []
    for suite in candidates:
        if not should_run(suite.name, config.suites):
            continue

        suite_extra = {"suite": suite.name}
        logger.info("Running suite: %s", suite.name, extra=suite_extra)
        start = time.monotonic()
        try:
            results = await suite.run(config)
        except EventBenchError as exc:
            elapsed = time.monotonic() - start
            logger.error("SUITE FAILED: %s: %s", suite.name, exc, extra=suite_extra)
            runs.append(SuiteRun(suite.name, False, elapsed, error=str(exc)))
            continue

        elapsed = time.monotonic() - start
        logger.info(
            "SUITE PASSED: %s (%.0fms)", suite.name, elapsed * 1000, extra=suite_extra
        )
        runs.append(SuiteRun(suite.name, True, elapsed, results=results))

    passed = sum(1 for r in runs if r.passed)
    logger.info("SUMMARY: %d passed, %d failed", passed, len(runs) - passed)
    return runs
