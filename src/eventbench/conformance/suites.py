"""End-to-end conformance suites: ingest, query, pagination and robustness."""

from __future__ import annotations

from typing import TYPE_CHECKING

from eventbench.conformance.framework import Step, TestCase
from eventbench.conformance.validators import (
    expect_count,
    expect_entity,
    expect_error,
    expect_next_cursor,
    expect_ok,
)
from eventbench.workloads.generators import unique_namespace

if TYPE_CHECKING:
    from collections.abc import Callable


def ingest_cases(ns: str) -> list[TestCase]:
    """Writes are acknowledged with ``status: OK``."""
    return [
        TestCase(
            name="Basic Ingestion",
            steps=(
                Step(f"EVENT in:{ns} entity:u1 loc:us type:login", expect_ok),
                Step(f"EVENT in:{ns} entity:u2 loc:eu type:logout", expect_ok),
            ),
        ),
    ]


def query_cases(ns: str) -> list[TestCase]:
    """Filtered queries return exactly the matching entities."""
    return [
        TestCase(
            name="Query with Filtering",
            steps=(
                Step(f"EVENT in:{ns} entity:u1 loc:ca type:login", expect_ok),
                Step(f"EVENT in:{ns} entity:u2 loc:ny type:login", expect_ok),
                Step("SLEEP", sleep=0.25),
                Step(
                    f"QUERY in:{ns} where:(loc:ca)",
                    expect_count(1),
                    max_retries=10,
                    retry_delay=0.1,
                ),
                Step(f"QUERY in:{ns} where:(loc:ca)", expect_entity("u1")),
            ),
        ),
        TestCase(
            name="Query No Match",
            steps=(
                Step(
                    f"QUERY in:{ns} where:(loc:texas)",
                    expect_count(0),
                    max_retries=5,
                    retry_delay=0.1,
                ),
            ),
        ),
    ]


def pagination_cases(ns: str) -> list[TestCase]:
    """``take`` limits page size and ``cursor`` resumes after ``next_cursor``."""
    return [
        TestCase(
            name="Cursor Pagination",
            steps=(
                Step(f"EVENT in:{ns} entity:A eid:10 loc:ca", expect_ok),
                Step(f"EVENT in:{ns} entity:B eid:20 loc:ca", expect_ok),
                Step(f"EVENT in:{ns} entity:C eid:30 loc:ca", expect_ok),
                Step("SLEEP", sleep=0.05),
                Step(
                    f"QUERY in:{ns} where:(loc:ca)",
                    expect_count(3),
                    max_retries=10,
                    retry_delay=0.1,
                ),
                Step(f"QUERY in:{ns} where:(loc:ca) take:2", expect_count(2)),
                Step(f"QUERY in:{ns} where:(loc:ca) take:3", expect_count(3)),
                Step(f"QUERY in:{ns} where:(loc:ca) take:2", expect_next_cursor("3")),
                Step(f"QUERY in:{ns} where:(loc:ca) cursor:3", expect_count(1)),
            ),
        ),
    ]


def robustness_cases(ns: str) -> list[TestCase]:
    """Malformed commands are rejected and the server stays up."""
    return [
        TestCase(
            name="Invalid Commands",
            steps=(
                Step("GARBAGE_COMMAND args:none", expect_error),
                Step("EVENT missing_args", expect_error),
            ),
        ),
        TestCase(
            name="Server Alive Check",
            steps=(Step(f"EVENT in:{ns} entity:alive type:check", expect_ok),),
        ),
    ]


# Suite name -> (namespace prefix, case builder)
CONFORMANCE_SUITES: dict[str, tuple[str, Callable[[str], list[TestCase]]]] = {
    "ingest": ("ingest", ingest_cases),
    "query": ("query", query_cases),
    "pagination": ("page", pagination_cases),
    "robustness": ("robust", robustness_cases),
}


def build_cases(suite: str) -> list[TestCase]:
    """Return the test cases of ``suite`` bound to a fresh namespace.

    Raises:
        KeyError: If ``suite`` is not a known conformance suite.
    """
    prefix, builder = CONFORMANCE_SUITES[suite]
    return builder(unique_namespace(prefix))
