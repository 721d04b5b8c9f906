"""Rate limiting middleware for cached file downloads.

Serving large files is the most expensive thing the gateway does for a
client, so every path under the configured prefixes is budgeted per client
address before routing.
"""

from typing import Optional, Tuple

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from media_gateway.core.errors import ErrorCode, build_error_response
from media_gateway.core.rate_limiter import FixedWindowRateLimiter, RateLimitExceededError

logger = structlog.get_logger(__name__)


class FileRateLimitMiddleware(BaseHTTPMiddleware):
    """HTTP middleware limiting file downloads per client address.

    Returns HTTP 429 with a Retry-After header when the limit is exceeded.
    The limiter is taken from ``app.state.file_limiter`` unless one is given
    explicitly; requests pass through while neither is set.
    """

    DEFAULT_PREFIXES: Tuple[str, ...] = ("/downloads/",)

    def __init__(
        self,
        app: ASGIApp,
        limiter: Optional[FixedWindowRateLimiter] = None,
        prefixes: Optional[Tuple[str, ...]] = None,
    ) -> None:
        """Initialize rate limit middleware.

        Args:
            app: The ASGI application
            limiter: Limiter instance; defaults to the one on app state.
            prefixes: Path prefixes that are rate limited.
        """
        super().__init__(app)
        self.limiter = limiter
        self.prefixes = prefixes or self.DEFAULT_PREFIXES

    def _is_limited_path(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.prefixes)

    def _limiter_for(self, request: Request) -> Optional[FixedWindowRateLimiter]:
        if self.limiter is not None:
            return self.limiter
        return getattr(request.app.state, "file_limiter", None)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request through rate limiting.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in chain

        Returns:
            Response from next handler or 429 if rate limited
        """
        path = request.url.path
        limiter = self._limiter_for(request)
        if limiter is None or not self._is_limited_path(path):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"

        try:
            limiter.consume(client_ip)
        except RateLimitExceededError as e:
            logger.warning(
                "file_rate_limit_exceeded",
                path=path,
                client_ip=client_ip,
                retry_after=round(e.retry_after, 3),
            )
            return JSONResponse(
                status_code=429,
                headers={"Retry-After": str(int(e.retry_after) + 1)},
                content=build_error_response(
                    error_code=ErrorCode.RATE_LIMIT_EXCEEDED,
                    message="Too many download requests. Please try again later.",
                ),
            )

        return await call_next(request)
