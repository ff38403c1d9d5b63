"""
RequestContext Middleware - Adds a request id to every request.

The id is stored on request.state.request_id, bound into the structlog
context for every log line of the request, and echoed back in the
X-Request-ID response header. A caller-supplied X-Request-ID is kept.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.infrastructure.observability.logging import bind_request_id, get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request_id to request.state, the log context and the response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_id(request_id)

        logger.debug("Request started", method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
