"""Bounded per-worker latency sampling."""

from __future__ import annotations

import random

DEFAULT_CAPACITY = 10_000


class LatencyReservoir:
    """Uniform random sample of at most ``capacity`` latencies.

    Implements Algorithm R online: the first ``capacity`` samples are
    appended; after that, the n-th sample replaces a uniformly chosen slot
    with probability ``capacity / n``. Every observed latency therefore has
    the same chance of being retained no matter when in the phase it
    arrived, so percentiles are not skewed toward startup or shutdown.

    The reservoir is owned by a single worker and is not thread-safe.

    Attributes:
        capacity: Maximum number of retained samples.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, rng: random.Random | None = None) -> None:
        if capacity < 1:
            msg = f"capacity must be >= 1, got: {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._rng = rng or random.Random()  # noqa: S311
        self._samples: list[float] = []

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, sample: float, seen: int) -> None:
        """Offer one latency to the reservoir.

        Args:
            sample: Latency in seconds.
            seen: Number of samples observed so far, including this one.
                Workers pass their current success count.
        """
        if len(self._samples) < self.capacity:
            self._samples.append(sample)
            return

        idx = self._rng.randrange(max(seen, 1))
        if idx < self.capacity:
            self._samples[idx] = sample

    def samples(self) -> tuple[float, ...]:
        """Return the retained samples in slot order."""
        return tuple(self._samples)
