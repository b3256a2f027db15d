"""Shared type aliases for eventbench."""

from __future__ import annotations

import random
from collections.abc import Callable
from typing import Union

# Decoded MessagePack reply: maps, lists and scalars of unknown shape.
Response = Union[
    None,
    bool,
    int,
    float,
    str,
    bytes,
    list["Response"],
    dict[str, "Response"],
]

# Produces the next command line from a worker-private RNG and the worker id.
CommandGenerator = Callable[[random.Random, int], str]

# Raises ValidationError when the response does not meet expectations.
Validator = Callable[[Response], None]
