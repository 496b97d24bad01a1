"""
DeenVerse Backend: Request ID Middleware
=========================================

What:  Tags every request with a correlation ID, echoed back in the
       X-Request-ID response header and in every error body.
How:   A client-supplied X-Request-ID is reused when it is a short token of
       safe characters; anything else (missing, too long, spaces, control
       characters) is replaced by a generated ID so it cannot forge or
       break log lines.

Readers:
    - current_request_id(): loggers, exception handlers, services
    - request.state.request_id: route handlers
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def current_request_id() -> Optional[str]:
    """The correlation ID of the request being handled, if any."""
    return request_id_var.get("") or None


def resolve_request_id(incoming: Optional[str]) -> str:
    """Keep a well-formed incoming ID, otherwise mint an 8-character one."""
    if incoming and _SAFE_REQUEST_ID.match(incoming):
        return incoming
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
