"""
Trace ID Middleware

Adds trace_id and correlation_id to all requests for log correlation.
"""

import contextvars
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


# Context variables for request-scoped values
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="")


def get_trace_id() -> str:
    """Trace ID of the current request, or a fresh one outside a request."""
    return trace_id_var.get() or str(uuid4())


class TraceMiddleware(BaseHTTPMiddleware):
    """
    Extracts or generates trace/correlation IDs.

    Headers:
    - X-Trace-ID: Unique ID for this request (generated if not provided)
    - X-Correlation-ID: ID linking related requests (usually the deal id)
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or str(uuid4())
        trace_id_var.set(trace_id)

        correlation_id = request.headers.get("X-Correlation-ID") or ""
        correlation_id_var.set(correlation_id)

        request.state.trace_id = trace_id
        request.state.correlation_id = correlation_id

        response = await call_next(request)

        response.headers["X-Trace-ID"] = trace_id
        if correlation_id:
            response.headers["X-Correlation-ID"] = correlation_id

        return response
