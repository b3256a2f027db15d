"""Command generators for the load and bench suites.

Each factory closes over a namespace and returns a ``CommandGenerator``:
a function of a worker-private ``random.Random`` and the worker id. The
generators keep no state of their own, so a worker's command sequence is
reproducible from its seed.
"""

from __future__ import annotations

import random
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from eventbench._internal.types import CommandGenerator

LOCATIONS = ("aws-us-east", "aws-us-west", "gcp-eu-west", "azure-asia")
EVENT_TYPES = ("click", "view", "purchase", "login", "logout")

# 80% of traffic comes from a hot set of 1,000 users
_HOT_USER_RATIO = 0.8
_HOT_USERS = 1_000
_COLD_USERS = 999_000


def unique_namespace(prefix: str) -> str:
    """Return a namespace that will not collide with earlier runs.

    Args:
        prefix: Human-readable label, e.g. ``"bench"``.

    Returns:
        ``test_<prefix>_<nanoseconds>_<0-999>``.
    """
    return f"test_{prefix}_{time.time_ns()}_{random.randrange(1000)}"  # noqa: S311


def realistic_user(rng: random.Random) -> str:
    """Pick an entity id with a hot/cold skew."""
    if rng.random() < _HOT_USER_RATIO:
        return f"user_{rng.randrange(_HOT_USERS)}"
    return f"user_{_HOT_USERS + rng.randrange(_COLD_USERS)}"


def ingest_generator(
    namespace: str,
    locations: tuple[str, ...] = LOCATIONS,
) -> CommandGenerator:
    """Writes with a realistic user, location, event type and session tag."""

    def generate(rng: random.Random, worker_id: int) -> str:
        user = realistic_user(rng)
        loc = rng.choice(locations)
        evt = rng.choice(EVENT_TYPES)
        return (
            f"EVENT in:{namespace} entity:{user} loc:{loc} type:{evt} "
            f"meta:session_{rng.randrange(99999)}"
        )

    return generate


def query_generator(
    namespace: str,
    *,
    take: int = 5,
    miss_ratio: float = 0.05,
    locations: tuple[str, ...] = LOCATIONS,
) -> CommandGenerator:
    """Location-filtered queries, with a fraction deliberately matching nothing.

    Args:
        namespace: Namespace to query.
        take: Page size requested from the service.
        miss_ratio: Fraction of queries against a location that never exists.
        locations: Locations to filter on.
    """

    def generate(rng: random.Random, worker_id: int) -> str:
        if rng.random() < miss_ratio:
            return f"QUERY in:{namespace} where:(loc:non_existent_zone)"
        loc = rng.choice(locations)
        return f"QUERY in:{namespace} where:(loc:{loc}) take:{take}"

    return generate


def mixed_generator(
    write: CommandGenerator,
    read: CommandGenerator,
    write_ratio: float = 0.5,
) -> CommandGenerator:
    """Interleave two generators, picking ``write`` with ``write_ratio``."""

    def generate(rng: random.Random, worker_id: int) -> str:
        if rng.random() < write_ratio:
            return write(rng, worker_id)
        return read(rng, worker_id)

    return generate


def complex_payload_generator(namespace: str, tags: int = 15) -> CommandGenerator:
    """Writes carrying many tags (under 2 KB) to stress the indexer."""

    def generate(rng: random.Random, worker_id: int) -> str:
        parts = [f"EVENT in:{namespace} entity:{realistic_user(rng)} type:heavy"]
        parts.extend(f"tag_{i}:val_{rng.randrange(100)}_abcdefgh" for i in range(tags))
        return " ".join(parts)

    return generate


def connection_storm_generator(namespace: str) -> CommandGenerator:
    """A cheap single-row query, so churn cost is dominated by connect/close."""
    command = f"QUERY in:{namespace} where:(loc:aws-us-east) take:1"

    def generate(rng: random.Random, worker_id: int) -> str:
        return command

    return generate
