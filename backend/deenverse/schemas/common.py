"""
DeenVerse Backend: Shared Response Schemas
===========================================

What:  The response envelope, pagination metadata and error/health models
       shared by every route.
How:   All API models extend ApiModel, which serializes field names as
       camelCase (`connections_count` → `connectionsCount`) and can be
       built straight from ORM objects.

Envelope:
    {"success": true, "message": "...", "data": {...}}
    {"success": true, "data": {"items": [...], "pagination": {...}}}
    {"success": false, "error": "not_found", "message": "...", "requestId": "..."}
"""

import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base for API contracts: camelCase on the wire, snake_case in Python."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class ApiResponse(ApiModel, Generic[T]):
    """Success envelope returned by every endpoint."""

    success: bool = Field(default=True)
    message: Optional[str] = Field(default=None, description="Human-readable outcome")
    data: Optional[T] = Field(default=None)


class PaginationMeta(ApiModel):
    """
    Page-number pagination state.

    Pages are 1-based. total_pages is 0 for an empty collection, so
    has_next is false and has_prev reflects only the requested page.
    """

    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class Page(ApiModel, Generic[T]):
    """One page of a collection plus its pagination metadata."""

    items: List[T]
    pagination: PaginationMeta


class ErrorResponse(ApiModel):
    """
    What:  Standardized error body for all API errors.

    Fields:
        success: Always false
        error: Machine-readable code (e.g. "not_found", "conflict")
        message: Human-readable description for display
        details: Optional extra context for client-correctable errors
        request_id: Correlation ID for tracing the error in server logs
    """

    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(ApiModel):
    """Returned by GET /health for monitoring and load balancer probes."""

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
