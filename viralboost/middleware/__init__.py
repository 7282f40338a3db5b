"""
Middleware components for request processing.

- Request context (request ID, client IP)
- Rate limiting for the AI and payment endpoints
- CORS for the browser client
"""

from viralboost.middleware.cors import CORSMiddleware
from viralboost.middleware.rate_limit_dependencies import rate_limit_ai, rate_limit_payment
from viralboost.middleware.rate_limiter import rate_limiter
from viralboost.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
    "rate_limiter",
    "rate_limit_ai",
    "rate_limit_payment",
]
