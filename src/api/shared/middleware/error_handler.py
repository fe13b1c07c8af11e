"""
Global Error Handler Middleware

Catches exceptions and returns standardized error responses.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ....crm.deals.errors import WorkflowError
from ..error_codes import ErrorCode
from ..exceptions import APIException, from_workflow_error
from ..responses import ErrorBody, ErrorDetail
from .trace import get_trace_id

logger = logging.getLogger(__name__)


def _error_response(exc: APIException) -> JSONResponse:
    error_body = ErrorBody(
        code=exc.code.value if isinstance(exc.code, ErrorCode) else str(exc.code),
        message=exc.message,
        details=exc.details,
        trace_id=exc.trace_id or get_trace_id(),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_body.model_dump(mode="json")}
    )


def _validation_details(errors) -> list:
    return [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in errors
    ]


def register_error_handlers(app: FastAPI):
    """
    Register all error handlers on the FastAPI app.

    Handles:
    - APIException (custom API errors)
    - WorkflowError (deal workflow errors, mapped to API errors)
    - RequestValidationError / pydantic ValidationError
    - Generic Exception (catch-all for unexpected errors)
    """

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        logger.warning(
            f"API Error: {exc.code.value} - {exc.message}",
            extra={"error_code": exc.code.value, "path": request.url.path}
        )
        return _error_response(exc)

    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(request: Request, exc: WorkflowError):
        api_exc = from_workflow_error(exc, trace_id=get_trace_id())
        log = logger.error if api_exc.status_code >= 500 else logger.warning
        log(
            f"Workflow Error: {type(exc).__name__}: {exc}",
            extra={"error_code": api_exc.code.value, "path": request.url.path}
        )
        return _error_response(api_exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = _validation_details(exc.errors())
        logger.warning(
            f"Validation Error: {len(details)} field(s)",
            extra={"path": request.url.path, "errors": [d.model_dump() for d in details]}
        )
        return _error_response(APIException(
            ErrorCode.VALIDATION_ERROR, "Request validation failed", details=details
        ))

    @app.exception_handler(PydanticValidationError)
    async def model_validation_handler(request: Request, exc: PydanticValidationError):
        details = _validation_details(exc.errors())
        logger.warning(
            f"Deal field validation failed: {len(details)} field(s)",
            extra={"path": request.url.path}
        )
        return _error_response(APIException(
            ErrorCode.VALIDATION_ERROR, "Deal field validation failed", details=details
        ))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled Exception: {type(exc).__name__}: {exc}",
            extra={"path": request.url.path, "traceback": traceback.format_exc()}
        )
        # Internal details stay in the logs
        return _error_response(APIException(ErrorCode.INTERNAL_ERROR, "An internal error occurred"))
