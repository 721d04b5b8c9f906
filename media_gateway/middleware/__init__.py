"""Middleware package for the API."""

from media_gateway.middleware.rate_limit import FileRateLimitMiddleware

__all__ = ["FileRateLimitMiddleware"]
