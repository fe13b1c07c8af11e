"""
Observability Module

Distributed tracing, metrics collection, and structured logging.
"""

from .tracing import (
    SERVICE,
    add_deal_to_span,
    create_span,
    extract_trace_context,
    get_current_span,
    get_trace_id,
    get_tracer,
    init_tracing,
    traced,
)
from .metrics import (
    get_meter,
    init_metrics,
    record_counter,
    record_histogram,
)
from .logging import StructuredFormatter, configure_logging

__all__ = [
    # Tracing
    "SERVICE",
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "create_span",
    "extract_trace_context",
    "traced",
    "add_deal_to_span",
    # Metrics
    "init_metrics",
    "get_meter",
    "record_counter",
    "record_histogram",
    # Logging
    "StructuredFormatter",
    "configure_logging",
]
