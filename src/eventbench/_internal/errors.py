"""Custom exception hierarchy for eventbench."""

from __future__ import annotations


class EventBenchError(Exception):
    """Base exception for all eventbench errors.

    All custom exceptions in eventbench inherit from this class, making it
    easy to catch any harness-specific error with a single except clause.
    """


class ConfigError(EventBenchError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Required environment variable has an invalid value.
        - Configuration value is out of acceptable range.
    """


class EngineError(EventBenchError):
    """Raised when the load engine itself cannot run a phase."""


class TransportError(EventBenchError):
    """Base class for connect, send and receive failures."""


class ConnectError(TransportError):
    """Raised when a connection to the event store cannot be established.

    Attributes:
        errno: The ``errno`` of the underlying ``OSError``, if any.
    """

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno


class SendError(TransportError):
    """Raised when a command cannot be written to the connection."""


class ReadError(TransportError):
    """Raised when a response cannot be read or decoded before the deadline."""


class ValidationError(EventBenchError):
    """Raised when a response was received but failed semantic expectations."""


class UnexpectedShapeError(ValidationError):
    """Raised when a decoded response does not have the expected structure.

    Examples:
        - The top-level response is a list where a map was expected.
        - ``data.objects`` is missing or is not a list of maps.
    """


class SettlingTimeoutError(EventBenchError):
    """Raised when a settling-time probe never became visible to queries."""


class PhaseHealthError(EventBenchError):
    """Raised when a phase produced no successes or too many server errors."""


class SuiteError(EventBenchError):
    """Raised when a conformance test case fails."""
