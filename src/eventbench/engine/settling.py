"""Index-lag measurement: how long until an acknowledged write is queryable."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from eventbench._internal.errors import (
    SettlingTimeoutError,
    TransportError,
    UnexpectedShapeError,
)
from eventbench._internal.logging import get_logger
from eventbench.transport.response import extract_objects

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from eventbench.transport.client import StoreClient

logger = get_logger("engine.settling")

DEFAULT_POLL_INTERVAL = 0.010
# 12,000 polls at 10 ms is a two minute ceiling
DEFAULT_MAX_ATTEMPTS = 12_000


class SettlingTimeProber:
    """Measures the delay between a write's acknowledgement and its visibility.

    Writes one probe event tagged with a nanosecond-timestamp marker that
    cannot collide with load traffic, then polls a query filtered on that
    marker at a fixed interval. The settling time is measured from the
    acknowledgement, not from the send, so it excludes request latency.

    Attributes:
        namespace: Namespace the probe is written into.
        interval: Seconds between polls.
        max_attempts: Polls before giving up.
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable[StoreClient]],
        namespace: str,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._connect = connect
        self.namespace = namespace
        self.interval = interval
        self.max_attempts = max_attempts

    @staticmethod
    def new_marker() -> str:
        """Return a probe marker unique to this call."""
        return f"probe_{time.time_ns()}"

    async def measure(self) -> float:
        """Write a probe and poll until it is visible.

        Returns:
            Settling time in seconds.

        Raises:
            TransportError: If the connection or the probe write fails.
            SettlingTimeoutError: If the probe is not visible after
                ``max_attempts`` polls.
        """
        marker = self.new_marker()
        async with await self._connect() as client:
            await client.request(
                f"EVENT in:{self.namespace} entity:{marker} loc:probe type:{marker}"
            )
            acked_at = time.perf_counter()

            query = f"QUERY in:{self.namespace} where:(type:{marker})"
            for attempt in range(1, self.max_attempts + 1):
                if await self._is_visible(client, query):
                    settling = time.perf_counter() - acked_at
                    logger.debug(
                        "Probe %s visible after %d polls (%.1fms)",
                        marker,
                        attempt,
                        settling * 1000,
                    )
                    return settling
                await asyncio.sleep(self.interval)

        msg = f"timeout waiting for indexer > {self.max_attempts} attempts"
        raise SettlingTimeoutError(msg)

    async def _is_visible(self, client: StoreClient, query: str) -> bool:
        # A failed poll counts as not visible yet
        try:
            response = await client.request(query)
            return len(extract_objects(response)) > 0
        except (TransportError, UnexpectedShapeError) as exc:
            logger.debug("Settling poll failed: %s", exc)
            return False
