"""
Shared API Utilities

Common responses, error taxonomy and middleware for the deals API.
"""

from .responses import (
    ResponseMeta,
    ListMeta,
    ListResponse,
    ErrorDetail,
    ErrorBody,
)

from .error_codes import (
    ErrorCode,
    ERROR_STATUS_CODES,
    get_status_code,
)

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    ConflictError,
    UnauthorizedError,
    ForbiddenError,
    BusinessLogicError,
    from_workflow_error,
)

from .middleware import (
    register_error_handlers,
    TraceMiddleware,
    TracingMiddleware,
    AuthMiddleware,
    get_trace_id,
    require_actor,
)

__all__ = [
    # Responses
    "ResponseMeta",
    "ListMeta",
    "ListResponse",
    "ErrorDetail",
    "ErrorBody",
    # Error codes
    "ErrorCode",
    "ERROR_STATUS_CODES",
    "get_status_code",
    # Exceptions
    "APIException",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UnauthorizedError",
    "ForbiddenError",
    "BusinessLogicError",
    "from_workflow_error",
    # Middleware
    "register_error_handlers",
    "TraceMiddleware",
    "TracingMiddleware",
    "AuthMiddleware",
    "get_trace_id",
    "require_actor",
]
