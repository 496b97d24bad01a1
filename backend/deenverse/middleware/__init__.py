# Middleware package init
"""
DeenVerse Backend: Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Request ID: correlation ID for logs and error bodies
    2. Logging: one access line per request, tagged with the request ID
    3. CORS: FastAPI's CORSMiddleware (handles preflight)

    Responses pass back through the chain in reverse order, so the
    X-Request-ID header and the access log line see the final status.
"""
