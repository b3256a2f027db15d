"""Configuration loading for eventbench."""

from __future__ import annotations

import os
from dataclasses import dataclass

from eventbench._internal.errors import ConfigError

DEFAULT_ADDRESS = "127.0.0.1:7878"


@dataclass(frozen=True)
class BenchConfig:
    """Global eventbench configuration.

    Attributes:
        address: ``host:port`` of the event store under test.
        workers: Number of concurrent simulated clients per phase.
        duration_seconds: Length of each load phase in seconds.
        request_timeout: Per-call deadline for connect, send and receive.
        reservoir_size: Latency samples retained per worker.
    """

    address: str = DEFAULT_ADDRESS
    workers: int = 20
    duration_seconds: float = 5.0
    request_timeout: float = 5.0
    reservoir_size: int = 10_000


def _parse_int(name: str, default: str, minimum: int) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None

    if value < minimum:
        msg = f"{name} must be >= {minimum}, got: {value}"
        raise ConfigError(msg)
    return value


def _parse_positive_float(name: str, default: str) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None

    if value <= 0:
        msg = f"{name} must be positive, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> BenchConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        EVENTBENCH_ADDRESS: Target address (default: 127.0.0.1:7878).
        EVENTBENCH_WORKERS: Concurrent workers per phase (default: 20).
        EVENTBENCH_DURATION: Phase duration in seconds (default: 5.0).
        EVENTBENCH_TIMEOUT: Per-call deadline in seconds (default: 5.0).
        EVENTBENCH_RESERVOIR_SIZE: Latency samples per worker (default: 10000).

    Returns:
        Populated BenchConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    address = os.environ.get("EVENTBENCH_ADDRESS", DEFAULT_ADDRESS)
    if ":" not in address:
        msg = f"EVENTBENCH_ADDRESS must be host:port, got: {address!r}"
        raise ConfigError(msg)

    return BenchConfig(
        address=address,
        workers=_parse_int("EVENTBENCH_WORKERS", "20", minimum=1),
        duration_seconds=_parse_positive_float("EVENTBENCH_DURATION", "5.0"),
        request_timeout=_parse_positive_float("EVENTBENCH_TIMEOUT", "5.0"),
        reservoir_size=_parse_int("EVENTBENCH_RESERVOIR_SIZE", "10000", minimum=1),
    )
