"""Shape helpers for decoded event-store responses.

Responses arrive as untyped trees (maps, lists and scalars). These helpers
check the expected shape and raise ``UnexpectedShapeError`` instead of
letting a ``KeyError`` or ``TypeError`` escape from a validator.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from eventbench._internal.errors import UnexpectedShapeError

if TYPE_CHECKING:
    from eventbench._internal.types import Response


def as_map(value: Response, what: str = "response") -> dict[str, Response]:
    """Return ``value`` as a map or raise ``UnexpectedShapeError``."""
    if not isinstance(value, dict):
        msg = f"{what} is not a map: {value!r}"
        raise UnexpectedShapeError(msg)
    return value


def as_list(value: Response, what: str = "value") -> list[Response]:
    """Return ``value`` as a list or raise ``UnexpectedShapeError``."""
    if not isinstance(value, list):
        msg = f"{what} is not a list: {value!r}"
        raise UnexpectedShapeError(msg)
    return value


def response_status(response: Response) -> Response:
    """Return the ``status`` field of a response map, or None if absent."""
    return as_map(response).get("status")


def response_data(response: Response) -> dict[str, Response]:
    """Return the ``data`` map of a response.

    Raises:
        UnexpectedShapeError: If the response is not a map, ``data`` is
            missing or null, or ``data`` is not a map.
    """
    data = as_map(response).get("data")
    if data is None:
        msg = "response data is nil"
        raise UnexpectedShapeError(msg)
    return as_map(data, "response data")


def extract_objects(response: Response) -> list[dict[str, Response]]:
    """Return the ``data.objects`` list of a query response.

    Args:
        response: A decoded query response.

    Returns:
        The matched objects, each a map.

    Raises:
        UnexpectedShapeError: If any level of the path has the wrong shape.
    """
    data = response_data(response)
    objects = as_list(data.get("objects"), "data.objects")
    return [as_map(obj, f"data.objects[{i}]") for i, obj in enumerate(objects)]


def pretty(response: Response) -> str:
    """Render a response as indented JSON for interactive display."""
    try:
        return json.dumps(response, indent=2, default=_json_default)
    except (TypeError, ValueError):
        return repr(response)


def _json_default(value: object) -> object:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)
