"""
OpenTelemetry Tracing Middleware

Server spans and request metrics for every HTTP request.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from ....crm.observability import (
    add_deal_to_span,
    extract_trace_context,
    get_tracer,
    record_counter,
    record_histogram,
)

logger = logging.getLogger(__name__)

UNTRACED_PATHS = {"/health", "/health/live", "/health/ready"}


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Creates an OpenTelemetry SERVER span per request, continuing any
    incoming W3C trace context, and records http_requests_total and
    http_request_duration_seconds.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNTRACED_PATHS:
            return await call_next(request)

        context = extract_trace_context(dict(request.headers))
        correlation_id = request.headers.get("X-Correlation-ID")
        start_time = time.perf_counter()

        with get_tracer().start_as_current_span(
            f"{request.method} {request.url.path}",
            context=context,
            kind=trace.SpanKind.SERVER,
            attributes={
                "http.method": request.method,
                "http.route": request.url.path,
                "http.scheme": request.url.scheme,
                "http.user_agent": request.headers.get("user-agent", ""),
            }
        ) as span:
            if correlation_id:
                add_deal_to_span(correlation_id, span)

            try:
                response = await call_next(request)
            except Exception as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                span.record_exception(e)
                record_counter("http_requests_total", 1, {
                    "method": request.method,
                    "path": request.url.path,
                    "status": "500"
                })
                raise

            span.set_attribute("http.status_code", response.status_code)
            record_counter("http_requests_total", 1, {
                "method": request.method,
                "path": request.url.path,
                "status": str(response.status_code)
            })
            record_histogram("http_request_duration_seconds", time.perf_counter() - start_time, {
                "method": request.method,
                "path": request.url.path
            })
            return response
