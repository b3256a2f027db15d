"""Workload command generators for eventbench.

Every generator is a function ``(rng, worker_id) -> command`` built by a
factory that fixes the namespace and mix parameters.
"""

from __future__ import annotations

from eventbench.workloads.generators import (
    EVENT_TYPES,
    LOCATIONS,
    complex_payload_generator,
    connection_storm_generator,
    ingest_generator,
    mixed_generator,
    query_generator,
    realistic_user,
    unique_namespace,
)

__all__ = [
    "EVENT_TYPES",
    "LOCATIONS",
    "complex_payload_generator",
    "connection_storm_generator",
    "ingest_generator",
    "mixed_generator",
    "query_generator",
    "realistic_user",
    "unique_namespace",
]
