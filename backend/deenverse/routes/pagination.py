"""Shared page/limit query parameters for the list endpoints."""

from fastapi import Query

from deenverse.config import settings


class PageParams:
    """
    1-based page number and page size.

    Out-of-range values are rejected by FastAPI validation (HTTP 400 through
    the validation handler) instead of being silently corrected.
    """

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(
            default=settings.default_page_size,
            ge=1,
            le=settings.max_page_size,
            description=f"Items per page (max {settings.max_page_size})",
        ),
    ):
        self.page = page
        self.limit = limit
