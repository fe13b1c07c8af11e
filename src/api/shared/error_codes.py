"""
Standard Error Codes

Consistent error codes across all API endpoints with HTTP status mapping.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """API error codes."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Business logic errors
    DEAL_NOT_FOUND = "DEAL_NOT_FOUND"
    REP_NOT_FOUND = "REP_NOT_FOUND"
    REVISION_CONFLICT = "REVISION_CONFLICT"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    PAYMENT_ALREADY_REQUESTED = "PAYMENT_ALREADY_REQUESTED"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    UPLOAD_FAILED = "UPLOAD_FAILED"


# HTTP status code mapping
ERROR_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DEAL_NOT_FOUND: 404,
    ErrorCode.REP_NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.REVISION_CONFLICT: 409,
    ErrorCode.PAYMENT_ALREADY_REQUESTED: 409,
    ErrorCode.INVALID_STATUS_TRANSITION: 422,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.DATA_INTEGRITY_ERROR: 500,
    ErrorCode.UPLOAD_FAILED: 502,
}


def get_status_code(error_code: ErrorCode) -> int:
    """HTTP status for an error code (500 if not mapped)."""
    return ERROR_STATUS_CODES.get(error_code, 500)

