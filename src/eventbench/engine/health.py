"""Phase-level correctness gate."""

from __future__ import annotations

from typing import TYPE_CHECKING

from eventbench._internal.errors import PhaseHealthError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from eventbench.engine.worker import WorkerOutcome

MAX_SERVER_ERROR_RATE = 0.01


def check_health(
    phase_name: str,
    workers: Sequence[WorkerOutcome],
    ignore_client_limits: bool = True,
    *,
    max_error_rate: float = MAX_SERVER_ERROR_RATE,
) -> None:
    """Fail a phase that produced no successes or too many server errors.

    Client-limit failures reflect the test host rather than the service, so
    they stay out of the error rate unless ``ignore_client_limits`` is False.

    Args:
        phase_name: Phase name used in the error message.
        workers: Joined worker outcomes.
        ignore_client_limits: Exclude ``client_limit_count`` from the rate.
        max_error_rate: Highest acceptable errors / (errors + successes).

    Raises:
        PhaseHealthError: On zero successes or an error rate above the limit.
    """
    successes = sum(w.success_count for w in workers)
    errors = sum(w.error_count for w in workers)
    if not ignore_client_limits:
        errors += sum(w.client_limit_count for w in workers)

    if successes == 0:
        msg = f"{phase_name} phase produced 0 successful requests (system down?)"
        raise PhaseHealthError(msg)

    error_rate = errors / (errors + successes)
    if error_rate > max_error_rate:
        msg = (
            f"{phase_name} phase server error rate {error_rate * 100:.2f}% "
            f"exceeded limit ({max_error_rate * 100:.0f}%)"
        )
        raise PhaseHealthError(msg)
