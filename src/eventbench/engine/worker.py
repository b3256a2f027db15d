"""Simulated client loop and its per-worker outcome record."""

from __future__ import annotations

import asyncio
import errno
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from eventbench._internal.errors import TransportError
from eventbench._internal.logging import get_logger

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from eventbench._internal.types import CommandGenerator, Validator
    from eventbench.engine.reservoir import LatencyReservoir
    from eventbench.transport.client import StoreClient

    ClientFactory = Callable[[], Awaitable[StoreClient]]

logger = get_logger("engine.worker")

# errno values meaning the test host ran out of sockets, ports or buffers.
_CLIENT_LIMIT_ERRNOS = frozenset(
    {
        errno.EADDRNOTAVAIL,
        errno.EADDRINUSE,
        errno.ENOBUFS,
        errno.EMFILE,
        errno.ENFILE,
    }
)

_CLIENT_LIMIT_MESSAGES = (
    "assign requested address",
    "no buffer space",
    "address already in use",
    "too many open files",
)


class ConnectionMode(Enum):
    """How a worker uses connections.

    PERSISTENT opens one connection for the whole phase. CHURN opens a new
    connection for every request and closes it afterwards.
    """

    PERSISTENT = "persistent"
    CHURN = "churn"


class WorkerState(Enum):
    """Lifecycle of a worker: IDLE -> RUNNING -> STOPPED."""

    IDLE = auto()
    RUNNING = auto()
    STOPPED = auto()


@dataclass
class WorkerOutcome:
    """Counters and latency sample for one worker in one phase.

    Written only by the owning worker while the phase runs; read by the
    aggregator after the worker has been joined.

    Attributes:
        worker_id: Identity within the phase.
        reservoir: Bounded latency sample (seconds) of successful requests.
        success_count: Requests that completed and passed validation.
        error_count: Transport failures and validator rejections.
        client_limit_count: Churn-mode connects that failed because the
            test host itself ran out of ports, sockets or buffers.
    """

    worker_id: int
    reservoir: LatencyReservoir
    success_count: int = 0
    error_count: int = 0
    client_limit_count: int = 0

    @property
    def completed(self) -> int:
        """Return the number of requests that reached a terminal outcome."""
        return self.success_count + self.error_count

    def record_success(self, latency: float) -> None:
        """Count a success and offer its latency to the reservoir."""
        self.success_count += 1
        self.reservoir.record(latency, self.success_count)


def is_client_limit(exc: BaseException) -> bool:
    """Return True if ``exc`` signals local resource exhaustion.

    Checks the ``errno`` of the exception and of its cause chain, then
    falls back to matching well-known OS error messages.

    Args:
        exc: A connection failure.

    Returns:
        True for port, socket or buffer exhaustion on the test host.
    """
    current: BaseException | None = exc
    while current is not None:
        code = getattr(current, "errno", None)
        if code in _CLIENT_LIMIT_ERRNOS:
            return True
        message = str(current).lower()
        if any(signature in message for signature in _CLIENT_LIMIT_MESSAGES):
            return True
        current = current.__cause__
    return False


class Worker:
    """A single simulated client.

    Loops generate -> send -> receive -> validate -> record until the
    shared stop event is set. No single iteration can end the loop: every
    failure is counted on the ``WorkerOutcome`` and the loop continues.
    In-flight requests are always allowed to finish, so the phase drains
    rather than cutting a request off mid-protocol.
    """

    def __init__(
        self,
        outcome: WorkerOutcome,
        connect: ClientFactory,
        generator: CommandGenerator,
        stop_event: asyncio.Event,
        rng: random.Random,
        *,
        validator: Validator | None = None,
        mode: ConnectionMode = ConnectionMode.PERSISTENT,
        phase: str | None = None,
    ) -> None:
        """Initialize a worker.

        Args:
            outcome: Outcome record this worker owns exclusively.
            connect: Coroutine factory returning a connected client.
            generator: Produces the next command string.
            stop_event: Phase-wide stop signal, only ever read here.
            rng: Worker-private random source passed to ``generator``.
            validator: Optional response check; raising rejects the response.
            mode: Persistent or churn connection handling.
            phase: Phase name attached to this worker's log records.
        """
        self.outcome = outcome
        self._connect = connect
        self._generator = generator
        self._stop_event = stop_event
        self._rng = rng
        self._validator = validator
        self._mode = mode
        self._state = WorkerState.IDLE
        self._log_extra = {"phase": phase, "worker_id": outcome.worker_id}

    @property
    def state(self) -> WorkerState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def worker_id(self) -> int:
        return self.outcome.worker_id

    async def run(self) -> WorkerOutcome:
        """Run until the stop event is set.

        Returns:
            The populated outcome record.
        """
        self._state = WorkerState.RUNNING
        try:
            if self._mode is ConnectionMode.PERSISTENT:
                await self._run_persistent()
            else:
                await self._run_churn()
        finally:
            self._state = WorkerState.STOPPED
        return self.outcome

    async def _run_persistent(self) -> None:
        try:
            client = await self._connect()
        except TransportError as exc:
            logger.warning(
                "Worker %d init failed: %s", self.worker_id, exc, extra=self._log_extra
            )
            self.outcome.error_count += 1
            return

        try:
            while not self._stop_event.is_set():
                command = self._generator(self._rng, self.worker_id)
                start = time.perf_counter()
                await self._exchange(client, command, start)
                await asyncio.sleep(0)
        finally:
            await client.close()

    async def _run_churn(self) -> None:
        while not self._stop_event.is_set():
            command = self._generator(self._rng, self.worker_id)
            start = time.perf_counter()

            try:
                client = await self._connect()
            except TransportError as exc:
                if is_client_limit(exc):
                    self.outcome.client_limit_count += 1
                else:
                    self.outcome.error_count += 1
                logger.debug(
                    "Worker %d connect failed: %s", self.worker_id, exc, extra=self._log_extra
                )
                # A connect that fails without suspending must not starve the timer
                await asyncio.sleep(0)
                continue

            try:
                await self._exchange(client, command, start)
            finally:
                await client.close()
            await asyncio.sleep(0)

    async def _exchange(self, client: StoreClient, command: str, start: float) -> None:
        """Send one command, read its reply and record the outcome."""
        try:
            await client.send(command)
        except TransportError as exc:
            logger.debug(
                "Worker %d send failed: %s", self.worker_id, exc, extra=self._log_extra
            )
            self.outcome.error_count += 1
            return

        try:
            response = await client.receive()
        except TransportError as exc:
            logger.debug(
                "Worker %d read failed: %s", self.worker_id, exc, extra=self._log_extra
            )
            self.outcome.error_count += 1
            return
        latency = time.perf_counter() - start

        if self._validator is not None:
            try:
                self._validator(response)
            except Exception as exc:  # noqa: BLE001
                logger.debug(
                    "Worker %d rejected response: %s", self.worker_id, exc, extra=self._log_extra
                )
                self.outcome.error_count += 1
                return

        self.outcome.record_success(latency)
