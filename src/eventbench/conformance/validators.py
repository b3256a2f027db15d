"""Response validators.

A validator takes a decoded response and raises ``ValidationError`` (or its
``UnexpectedShapeError`` subclass) when the response does not meet an
expectation. Returning normally means the response is accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from eventbench._internal.errors import ValidationError
from eventbench.transport.response import (
    extract_objects,
    response_data,
    response_status,
)

if TYPE_CHECKING:
    from eventbench._internal.types import Response, Validator


def expect_ok(response: Response) -> None:
    """Accept only a map whose ``status`` is ``"OK"``."""
    status = response_status(response)
    if status != "OK":
        msg = f"expected status OK, got {response!r}"
        raise ValidationError(msg)


def expect_error(response: Response) -> None:
    """Accept a map whose ``status`` is anything but ``"OK"``."""
    if response_status(response) == "OK":
        msg = "expected error, got OK"
        raise ValidationError(msg)


def expect_objects(response: Response) -> None:
    """Accept any well-formed query reply, including an empty result."""
    extract_objects(response)


def expect_count(n: int) -> Validator:
    """Accept a query reply containing exactly ``n`` objects."""

    def validate(response: Response) -> None:
        objects = extract_objects(response)
        if len(objects) != n:
            msg = f"expected {n} objects, got {len(objects)}"
            raise ValidationError(msg)

    return validate


def expect_entity(value: str) -> Validator:
    """Accept a query reply whose first object has ``entity == value``."""

    def validate(response: Response) -> None:
        objects = extract_objects(response)
        if not objects:
            msg = "no objects returned"
            raise ValidationError(msg)
        got = str(objects[0].get("entity"))
        if got != value:
            msg = f"expected entity {value!r}, got {got!r}"
            raise ValidationError(msg)

    return validate


def expect_next_cursor(value: str) -> Validator:
    """Accept a query reply whose ``data.next_cursor`` renders as ``value``."""

    def validate(response: Response) -> None:
        got = str(response_data(response).get("next_cursor"))
        if got != value:
            msg = f"expected next_cursor {value!r}, got {got!r}"
            raise ValidationError(msg)

    return validate
