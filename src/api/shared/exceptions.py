"""
API Exception Classes

Custom exceptions that map to standard error responses, plus the mapping
from deal workflow errors onto them.
"""

from typing import List, Optional

from ...crm.deals.errors import (
    DealIntegrityError,
    DealNotFoundError,
    InvalidTransitionError,
    PaymentRequestError,
    PermissionDeniedError,
    RepNotFoundError,
    RevisionConflictError,
    UploadError,
    WorkflowError,
)
from .error_codes import ErrorCode, get_status_code
from .responses import ErrorDetail


class APIException(Exception):
    """
    Base exception for API errors.

    The error handler middleware catches these and returns standardized
    error responses.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.trace_id = trace_id
        self.status_code = get_status_code(code)
        super().__init__(message)


class ValidationError(APIException):
    """HTTP Status: 400"""

    def __init__(
        self,
        message: str,
        details: Optional[List[ErrorDetail]] = None,
        trace_id: Optional[str] = None
    ):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            trace_id=trace_id
        )


class NotFoundError(APIException):
    """HTTP Status: 404"""

    def __init__(
        self,
        resource: str,
        resource_id: Optional[str] = None,
        trace_id: Optional[str] = None
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' not found"

        code_map = {
            "Deal": ErrorCode.DEAL_NOT_FOUND,
            "Rep": ErrorCode.REP_NOT_FOUND,
        }
        super().__init__(code=code_map.get(resource, ErrorCode.NOT_FOUND), message=message, trace_id=trace_id)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(APIException):
    """HTTP Status: 409"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.REVISION_CONFLICT,
        trace_id: Optional[str] = None
    ):
        super().__init__(code=code, message=message, trace_id=trace_id)


class UnauthorizedError(APIException):
    """HTTP Status: 401"""

    def __init__(
        self,
        message: str = "Authentication required",
        trace_id: Optional[str] = None
    ):
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message, trace_id=trace_id)


class ForbiddenError(APIException):
    """HTTP Status: 403"""

    def __init__(
        self,
        message: str = "Permission denied",
        trace_id: Optional[str] = None
    ):
        super().__init__(code=ErrorCode.FORBIDDEN, message=message, trace_id=trace_id)


class BusinessLogicError(APIException):
    """
    Business logic violation error, such as a backwards status move.

    HTTP Status: Varies by error code (typically 422)
    """


def from_workflow_error(exc: WorkflowError, trace_id: Optional[str] = None) -> APIException:
    """Translate a deal workflow error into its API exception."""
    if isinstance(exc, DealNotFoundError):
        return NotFoundError("Deal", exc.deal_id, trace_id=trace_id)
    if isinstance(exc, RepNotFoundError):
        return NotFoundError("Rep", exc.rep_id, trace_id=trace_id)
    if isinstance(exc, RevisionConflictError):
        return ConflictError(str(exc), trace_id=trace_id)
    if isinstance(exc, PaymentRequestError):
        return ConflictError(str(exc), code=ErrorCode.PAYMENT_ALREADY_REQUESTED, trace_id=trace_id)
    if isinstance(exc, PermissionDeniedError):
        return ForbiddenError(str(exc), trace_id=trace_id)
    if isinstance(exc, InvalidTransitionError):
        return BusinessLogicError(
            ErrorCode.INVALID_STATUS_TRANSITION,
            str(exc),
            details=[
                ErrorDetail(field="from_status", message=exc.from_status),
                ErrorDetail(field="to_status", message=exc.to_status),
            ],
            trace_id=trace_id,
        )
    if isinstance(exc, UploadError):
        return APIException(ErrorCode.UPLOAD_FAILED, str(exc), trace_id=trace_id)
    if isinstance(exc, DealIntegrityError):
        return APIException(ErrorCode.DATA_INTEGRITY_ERROR, str(exc), trace_id=trace_id)
    return APIException(ErrorCode.INTERNAL_ERROR, str(exc), trace_id=trace_id)
