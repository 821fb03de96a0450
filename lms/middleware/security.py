"""Security middleware and rate limiting."""

from collections.abc import Awaitable, Callable

from fastapi import Request
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from lms.config.settings import get_settings


# In-memory rate limiter keyed by client address
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().RATE_LIMIT_ENABLED)


class SimpleSecurityMiddleware(BaseHTTPMiddleware):
    """Adds essential security headers to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle request with security headers."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


# Rate limiting decorators
write_rate_limit = limiter.limit("30/minute")  # Progress writes, access recording
export_rate_limit = limiter.limit("10/minute")  # CSV exports
api_rate_limit = limiter.limit("100/minute")  # General API calls


def create_rate_limit_dependency(
    limit_decorator: Callable[[Callable], Callable],
    name: str,
) -> Callable[[Request], Awaitable[None]]:
    """Create rate limit dependencies from decorators.

    This allows applying rate limits at router level without modifying functions.
    slowapi keys limits by function name, so every dependency needs its own.
    """

    async def rate_limited_dependency(request: Request) -> None:
        """Apply rate limiting to protect router endpoints."""

    rate_limited_dependency.__name__ = f"rate_limited_{name}"
    return limit_decorator(rate_limited_dependency)


# Router- and route-level dependencies
progress_rate_limit = create_rate_limit_dependency(api_rate_limit, "progress")
history_rate_limit = create_rate_limit_dependency(api_rate_limit, "learning_history")
write_route_limit = create_rate_limit_dependency(write_rate_limit, "writes")
export_route_limit = create_rate_limit_dependency(export_rate_limit, "export")
