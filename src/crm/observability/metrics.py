"""
OpenTelemetry Metrics

Counters and histograms for HTTP traffic and deal workflow activity.
Recording is a no-op until init_metrics() has run.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from .tracing import SERVICE

logger = logging.getLogger(__name__)

# Global meter
_meter: Optional[metrics.Meter] = None

# Metric instruments
_counters: Dict[str, metrics.Counter] = {}
_histograms: Dict[str, metrics.Histogram] = {}

COUNTERS = {
    "http_requests_total": "Total HTTP requests",
    "deal_transitions_total": "Deal status changes, by from/to status and trigger",
    "deal_advance_blocked_total": "Saves that did not advance, by blocking reason",
    "uploads_total": "Files uploaded to deals, by category",
}

HISTOGRAMS = {
    "http_request_duration_seconds": "HTTP request duration",
    "deal_save_duration_seconds": "Time to evaluate and persist a deal save",
}


def init_metrics(
    service_name: str = SERVICE,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    export_interval_ms: int = 60000
) -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Args:
        service_name: Name of the service
        otlp_endpoint: OTLP exporter endpoint
        console_export: Enable console export for debugging
        export_interval_ms: Export interval in milliseconds
    """
    global _meter

    readers = []

    if otlp_endpoint:
        readers.append(PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
            export_interval_millis=export_interval_ms
        ))
        logger.info(f"OTel metrics: OTLP exporter configured -> {otlp_endpoint}")

    if console_export:
        readers.append(PeriodicExportingMetricReader(
            ConsoleMetricExporter(),
            export_interval_millis=export_interval_ms
        ))
        logger.info("OTel metrics: Console exporter enabled")

    provider = MeterProvider(resource=Resource.create({SERVICE_NAME: service_name}), metric_readers=readers)
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter(service_name)
    _init_standard_metrics()

    logger.info(f"OTel metrics initialized: {service_name}")
    return _meter


def _init_standard_metrics():
    meter = get_meter()

    for name, description in COUNTERS.items():
        _counters[name] = meter.create_counter(name, description=description, unit="1")

    for name, description in HISTOGRAMS.items():
        _histograms[name] = meter.create_histogram(name, description=description, unit="s")


def get_meter() -> metrics.Meter:
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(SERVICE)
    return _meter


def record_counter(
    name: str,
    value: int = 1,
    attributes: Dict[str, Any] = None
):
    """Record a counter metric."""
    if name in _counters:
        _counters[name].add(value, attributes or {})


def record_histogram(
    name: str,
    value: float,
    attributes: Dict[str, Any] = None
):
    """Record a histogram metric."""
    if name in _histograms:
        _histograms[name].record(value, attributes or {})
