"""
Shared API Middleware

Cross-cutting concerns for all API endpoints:
- Error handling with standardized responses
- Trace ID propagation for log correlation
- OpenTelemetry request spans and metrics
- Actor resolution from gateway identity headers
"""

from .error_handler import register_error_handlers
from .trace import (
    TraceMiddleware,
    get_trace_id,
)
from .tracing import TracingMiddleware
from .auth import (
    AuthMiddleware,
    get_current_actor,
    require_actor,
    is_auth_required,
)

__all__ = [
    # Error handling
    "register_error_handlers",
    # Trace
    "TraceMiddleware",
    "get_trace_id",
    # OpenTelemetry Tracing
    "TracingMiddleware",
    # Auth
    "AuthMiddleware",
    "get_current_actor",
    "require_actor",
    "is_auth_required",
]
