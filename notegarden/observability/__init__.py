"""Observability helpers."""

from notegarden.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_sync,
    record_edge_insert_failure,
    record_unresolved_references,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_sync",
    "record_edge_insert_failure",
    "record_unresolved_references",
]
