"""Sequential, retry-driven conformance steps."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from eventbench._internal.errors import SuiteError, TransportError, ValidationError
from eventbench._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventbench._internal.types import Validator
    from eventbench.transport.client import StoreClient

logger = get_logger("conformance.framework")

_SLEEP_COMMAND = re.compile(r"^SLEEP\s+(\d+(?:\.\d+)?)(ms|s)?$")


@dataclass(frozen=True)
class Step:
    """One command in a test case.

    Attributes:
        command: Command line sent to the service, or ``SLEEP <n>[ms|s]``
            to pause without sending anything.
        validator: Check applied to the reply. None accepts any reply.
        max_retries: Extra attempts when the validator rejects the reply.
        retry_delay: Seconds between attempts.
        sleep: Seconds to pause before the step runs.
    """

    command: str
    validator: Validator | None = None
    max_retries: int = 0
    retry_delay: float = 0.0
    sleep: float = 0.0


@dataclass(frozen=True)
class TestCase:
    """A named, ordered list of steps run on one connection."""

    __test__ = False  # not a pytest test class

    name: str
    steps: Sequence[Step] = field(default_factory=tuple)


def parse_sleep(command: str) -> float | None:
    """Return the pause in seconds for a ``SLEEP`` command, else None.

    ``SLEEP 250ms`` and ``SLEEP 0.5s`` are accepted; a bare number is seconds.
    """
    match = _SLEEP_COMMAND.match(command.strip())
    if match is None:
        return None
    value = float(match.group(1))
    return value / 1000.0 if match.group(2) == "ms" else value


async def run_step(client: StoreClient, step: Step) -> None:
    """Run one step, retrying validator rejections.

    Transport failures are not retried: the connection state is unknown.

    Raises:
        SuiteError: When every attempt failed.
    """
    if step.sleep > 0:
        await asyncio.sleep(step.sleep)

    pause = parse_sleep(step.command)
    if pause is not None:
        await asyncio.sleep(pause)
        return
    if step.command == "SLEEP":
        return

    attempts = 1 + step.max_retries
    last_error: str | None = None

    for attempt in range(1, attempts + 1):
        try:
            response = await client.request(step.command)
        except TransportError as exc:
            msg = f"{type(exc).__name__}: {exc}"
            raise SuiteError(msg) from exc

        if step.validator is None:
            return
        try:
            step.validator(response)
        except ValidationError as exc:
            last_error = str(exc)
            logger.debug(
                "Attempt %d/%d of %r rejected: %s",
                attempt,
                attempts,
                step.command,
                exc,
            )
        else:
            return

        if attempt < attempts:
            await asyncio.sleep(step.retry_delay)

    raise SuiteError(last_error or "validation failed")


async def run_test_cases(client: StoreClient, cases: Sequence[TestCase]) -> None:
    """Run test cases in order, stopping at the first failure.

    Args:
        client: Connected client shared by every step.
        cases: Test cases to run.

    Raises:
        SuiteError: ``test '<name>' failed: step <i>: <reason>``.
    """
    for case in cases:
        for i, step in enumerate(case.steps, start=1):
            try:
                await run_step(client, step)
            except SuiteError as exc:
                logger.info("  %-40s FAILED", f"{case.name}...")
                msg = f"test {case.name!r} failed: step {i}: {exc}"
                raise SuiteError(msg) from exc
        logger.info("  %-40s PASSED", f"{case.name}...")
