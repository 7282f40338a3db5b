"""
RequestContext Middleware - request id and client address on every request.

Adds to request.state:
- request_id: UUID for tracing this request
- ip_address: client IP (the rate limit key)

The request id is also bound into the structlog context for the duration of
the request and returned in the X-Request-ID header.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from viralboost.infrastructure.observability.logging import bound_context, get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, trust_forwarded_for: bool = False):
        super().__init__(app)
        self.trust_forwarded_for = trust_forwarded_for

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = self._extract_client_ip(request)

        with bound_context(request_id=request_id):
            response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        if self.trust_forwarded_for:
            forwarded_for = request.headers.get("x-forwarded-for")
            if forwarded_for:
                # "client, proxy1, proxy2": the first entry is the client
                return forwarded_for.split(",")[0].strip()
        return request.client.host if request.client else None
