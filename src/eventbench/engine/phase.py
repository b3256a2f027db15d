"""Phase lifecycle: start N workers, run for a duration, stop and drain."""

from __future__ import annotations

import asyncio
import functools
import random
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from eventbench._internal.errors import EngineError
from eventbench._internal.logging import get_logger
from eventbench.engine.reservoir import DEFAULT_CAPACITY, LatencyReservoir
from eventbench.engine.worker import ConnectionMode, Worker, WorkerOutcome
from eventbench.transport.client import DEFAULT_TIMEOUT, StoreClient

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from typing import Any, TypeVar

    from eventbench._internal.types import CommandGenerator, Validator

    T = TypeVar("T")

logger = get_logger("engine.phase")


def install_uvloop() -> None:
    """Install uvloop as the event loop policy if available.

    Falls back silently to the default asyncio loop on Windows or when
    uvloop is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion on a fresh event loop (uvloop if present)."""
    install_uvloop()
    return asyncio.run(coro)


class PhaseState(Enum):
    """State machine for a phase runner."""

    CREATED = auto()
    RUNNING = auto()
    DRAINING = auto()
    COMPLETED = auto()


class PhaseRunner:
    """Owns the worker pool for one timed phase.

    All workers are launched at once against a single ``asyncio.Event``.
    After ``duration_seconds`` the event is set exactly once and the runner
    waits for every worker to finish its in-flight request and exit. The
    phase therefore lasts at least the configured duration and at most one
    request deadline longer.

    State machine: CREATED -> RUNNING -> DRAINING -> COMPLETED

    Attributes:
        address: ``host:port`` of the event store.
        timeout: Per-call deadline handed to each connection.
        reservoir_size: Latency samples retained per worker.
        name: Phase name used in log records, if any.
    """

    def __init__(
        self,
        address: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        reservoir_size: int = DEFAULT_CAPACITY,
        connect: Callable[[], Awaitable[StoreClient]] | None = None,
        name: str | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            address: ``host:port`` of the event store.
            timeout: Per-call deadline for connect, send and receive.
            reservoir_size: Latency samples retained per worker.
            connect: Optional client factory overriding ``StoreClient.connect``.
            name: Phase name attached to log records.
        """
        self.address = address
        self.timeout = timeout
        self.reservoir_size = reservoir_size
        self.name = name
        self._connect = connect or functools.partial(
            StoreClient.connect, address, timeout=timeout
        )
        self._state = PhaseState.CREATED
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> PhaseState:
        """Return the current phase state."""
        return self._state

    def stop(self) -> None:
        """Signal all workers to stop early.

        Idempotent once the phase has started; a no-op after it completed.

        Raises:
            EngineError: If called before ``run()``.
        """
        if self._stop_event is None:
            msg = "PhaseRunner.stop() called before run()"
            raise EngineError(msg)
        if not self._stop_event.is_set():
            logger.info("Early stop requested", extra={"phase": self.name})
            self._stop_event.set()

    async def run(
        self,
        worker_count: int,
        duration_seconds: float,
        generator: CommandGenerator,
        validator: Validator | None = None,
        mode: ConnectionMode = ConnectionMode.PERSISTENT,
    ) -> list[WorkerOutcome]:
        """Run one phase and return every worker's outcome.

        Args:
            worker_count: Number of concurrent workers.
            duration_seconds: How long to generate load before stopping.
            generator: Command generator shared by all workers.
            validator: Optional response validator.
            mode: Persistent or churn connection handling.

        Returns:
            Outcomes ordered by worker id.

        Raises:
            EngineError: If the arguments are out of range or the runner
                has already been used.
        """
        if worker_count < 1:
            msg = f"worker_count must be >= 1, got: {worker_count}"
            raise EngineError(msg)
        if duration_seconds <= 0:
            msg = f"duration_seconds must be positive, got: {duration_seconds}"
            raise EngineError(msg)
        if self._state is not PhaseState.CREATED:
            msg = f"PhaseRunner cannot be reused (state={self._state.name})"
            raise EngineError(msg)

        stop_event = asyncio.Event()
        self._stop_event = stop_event
        seed_base = time.time_ns()

        workers = []
        for i in range(worker_count):
            # One RNG per worker feeds both its commands and its reservoir
            rng = random.Random(seed_base + i)  # noqa: S311
            outcome = WorkerOutcome(
                worker_id=i,
                reservoir=LatencyReservoir(self.reservoir_size, rng),
            )
            workers.append(
                Worker(
                    outcome,
                    connect=self._connect,
                    generator=generator,
                    stop_event=stop_event,
                    rng=rng,
                    validator=validator,
                    mode=mode,
                    phase=self.name,
                )
            )

        logger.info(
            "Starting phase: workers=%d, duration=%.1fs, mode=%s, target=%s",
            worker_count,
            duration_seconds,
            mode.value,
            self.address,
            extra={"phase": self.name},
        )

        self._state = PhaseState.RUNNING
        self._install_signal_handlers()
        start = time.monotonic()
        tasks = [
            asyncio.create_task(w.run(), name=f"worker-{w.worker_id}") for w in workers
        ]

        try:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=duration_seconds)
            except TimeoutError:
                pass
            stop_event.set()
            self._state = PhaseState.DRAINING
            outcomes = await asyncio.gather(*tasks)
        except Exception as exc:
            logger.exception("Phase failed", extra={"phase": self.name})
            msg = f"Phase failed: {exc}"
            raise EngineError(msg) from exc
        finally:
            stop_event.set()
            # Drain anything still running after a failure
            await asyncio.gather(*tasks, return_exceptions=True)
            self._remove_signal_handlers()

        self._state = PhaseState.COMPLETED
        elapsed = time.monotonic() - start
        ok = sum(o.success_count for o in outcomes)
        err = sum(o.error_count for o in outcomes)
        logger.info(
            "Phase finished: elapsed=%.2fs, ok=%d, err=%d",
            elapsed,
            ok,
            err,
            extra={"phase": self.name},
        )
        return list(outcomes)

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to ``stop()`` while the phase runs."""
        if sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not on the main thread (e.g. running inside a test harness)
            logger.debug("Signal handlers unavailable, early stop via stop() only")

    def _remove_signal_handlers(self) -> None:
        if sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass


def run_phase(
    address: str,
    worker_count: int,
    duration_seconds: float,
    generator: CommandGenerator,
    validator: Validator | None = None,
    mode: ConnectionMode = ConnectionMode.PERSISTENT,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    reservoir_size: int = DEFAULT_CAPACITY,
) -> list[WorkerOutcome]:
    """Blocking wrapper around ``PhaseRunner.run`` for synchronous callers."""
    runner = PhaseRunner(address, timeout=timeout, reservoir_size=reservoir_size)
    return run_async(
        runner.run(worker_count, duration_seconds, generator, validator, mode)
    )
