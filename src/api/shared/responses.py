"""
Standard API Response Models

Provides consistent response shapes across all endpoints.
"""

from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field


T = TypeVar('T')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResponseMeta(BaseModel):
    """Metadata included in all responses."""

    trace_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_utcnow)


class ListMeta(ResponseMeta):
    """Metadata for list responses with pagination."""

    count: int = 0
    limit: int = 100
    offset: int = 0


class ListResponse(BaseModel, Generic[T]):
    """
    Standard list response with pagination.

    Response shape:
    {
        "data": [ ... ],
        "meta": {"count": 20, "limit": 100, "offset": 0, "trace_id": "abc-123"}
    }
    """

    data: List[T]
    meta: ListMeta

    @classmethod
    def create(
        cls,
        data: List[T],
        limit: int = 100,
        offset: int = 0,
        trace_id: Optional[str] = None
    ) -> "ListResponse[T]":
        meta = ListMeta(
            trace_id=trace_id or str(uuid4()),
            count=len(data),
            limit=limit,
            offset=offset,
        )
        return cls(data=data, meta=meta)


class ErrorDetail(BaseModel):
    """Detailed error information for validation errors."""

    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ErrorBody(BaseModel):
    """
    Error body with code, message, and details.

    Returned as {"error": {...}} by the registered error handlers.
    """

    code: str
    message: str
    details: Optional[List[ErrorDetail]] = None
    trace_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_utcnow)
