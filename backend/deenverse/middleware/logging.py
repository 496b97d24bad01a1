"""
DeenVerse Backend: Access Log Middleware
=========================================

What:  One line per API request on the `deenverse.access` logger, naming
       the acting account once the auth dependency has resolved it.

Line format:
    POST /api/imaam/…/connect 201 12.4ms [a1b2c3d4] account=<uuid> from 10.0.0.7

Levels:
    5xx → ERROR, 4xx → WARNING, slower than SLOW_REQUEST_MS → WARNING,
    anything else → INFO. Health and docs paths are not logged.

Never logged: request bodies, bearer tokens.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from deenverse.config import settings
from deenverse.middleware.request_id import current_request_id

logger = logging.getLogger("deenverse.access")

QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def access_level(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400 or duration_ms > settings.slow_request_ms:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        # Set by get_current_account; absent for anonymous and rejected calls
        account_id = getattr(request.state, "account_id", None) or "-"
        client = request.client.host if request.client else "-"
        rid = current_request_id() or "-"

        logger.log(
            access_level(response.status_code, duration_ms),
            "%s %s %d %.1fms [%s] account=%s from %s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            rid,
            account_id,
            client,
            extra={
                "request_id": rid,
                "account_id": account_id,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
