"""FastAPI application entry point.

This module assembles all components and creates the main application.
"""

import functools
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from media_gateway import __version__
from media_gateway.api import download, files, health, metadata, metrics, subtitles
from media_gateway.core.checks import ensure_tools
from media_gateway.core.config import ConfigService, ServerConfig
from media_gateway.core.errors import APIError, global_exception_handler
from media_gateway.core.logging import clear_request_id, configure_logging, set_request_id
from media_gateway.core.metrics import MetricsCollector, initialize_metrics
from media_gateway.core.rate_limiter import FixedWindowRateLimiter
from media_gateway.middleware.rate_limit import FileRateLimitMiddleware
from media_gateway.providers.fallback_api import FallbackMediaClient
from media_gateway.providers.library import LibraryCaptionSource, LibraryFormatLister
from media_gateway.providers.subprocess_lister import SubprocessFormatLister
from media_gateway.providers.youtube import YouTubeDataClient
from media_gateway.providers.ytdlp import YtDlpRunner
from media_gateway.services.cache import ArtifactCache
from media_gateway.services.extraction import ExtractionOrchestrator
from media_gateway.services.format_resolver import FormatResolver
from media_gateway.services.subtitles import SubtitleService

logger = structlog.get_logger(__name__)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics.

    Records request count and duration for all endpoints,
    using FastAPI route templates to normalize paths.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Process request and record metrics."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Fixed label for unmatched routes to bound cardinality
        route = request.scope.get("route")
        endpoint = route.path if route else "/unmatched"

        MetricsCollector.record_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration=duration,
        )

        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context for the request's lifetime."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        try:
            response = await call_next(request)
        finally:
            clear_request_id()
        response.headers["X-Request-ID"] = request_id
        return response


# Global service instances
_downloads_cache: Optional[ArtifactCache] = None
_subtitles_cache: Optional[ArtifactCache] = None
_youtube_client: Optional[YouTubeDataClient] = None
_fallback_client: Optional[FallbackMediaClient] = None
_orchestrator: Optional[ExtractionOrchestrator] = None
_subtitle_service: Optional[SubtitleService] = None
_download_limiter: Optional[FixedWindowRateLimiter] = None
_subtitle_limiter: Optional[FixedWindowRateLimiter] = None


def get_downloads_cache() -> ArtifactCache:
    """Get the global downloads cache."""
    if _downloads_cache is None:
        raise RuntimeError("Downloads cache not configured")
    return _downloads_cache


def get_subtitles_cache() -> ArtifactCache:
    """Get the global subtitles cache."""
    if _subtitles_cache is None:
        raise RuntimeError("Subtitles cache not configured")
    return _subtitles_cache


def get_youtube_client() -> YouTubeDataClient:
    """Get the global YouTube Data API client."""
    if _youtube_client is None:
        raise RuntimeError("YouTube client not configured")
    return _youtube_client


def get_fallback_client() -> FallbackMediaClient:
    """Get the global fallback media API client."""
    if _fallback_client is None:
        raise RuntimeError("Fallback media client not configured")
    return _fallback_client


def get_orchestrator() -> ExtractionOrchestrator:
    """Get the global extraction orchestrator."""
    if _orchestrator is None:
        raise RuntimeError("Extraction orchestrator not configured")
    return _orchestrator


def get_subtitle_service() -> SubtitleService:
    """Get the global subtitle service."""
    if _subtitle_service is None:
        raise RuntimeError("Subtitle service not configured")
    return _subtitle_service


def get_download_limiter() -> FixedWindowRateLimiter:
    """Get the global download endpoint limiter."""
    if _download_limiter is None:
        raise RuntimeError("Download rate limiter not configured")
    return _download_limiter


def get_subtitle_limiter() -> FixedWindowRateLimiter:
    """Get the global subtitle endpoint limiter."""
    if _subtitle_limiter is None:
        raise RuntimeError("Subtitle rate limiter not configured")
    return _subtitle_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown."""
    global _downloads_cache, _subtitles_cache, _youtube_client, _fallback_client
    global _orchestrator, _subtitle_service, _download_limiter, _subtitle_limiter

    logger.info("application_starting", version=__version__)

    initialize_metrics(__version__)

    config_service = ConfigService()
    config = config_service.load()
    config_service.validate()

    configure_logging(config.logging.level, config.logging.format)

    logger.info(
        "configuration_loaded",
        server_port=config.server.port,
        downloads_dir=config.storage.downloads_dir,
        subtitles_dir=config.storage.subtitles_dir,
        max_files=config.storage.max_files,
        youtube_api_configured=bool(config.youtube.api_key),
    )

    # Caches
    _downloads_cache = ArtifactCache(config.storage.downloads_dir, config.storage.max_files)
    _downloads_cache.initialize()
    _subtitles_cache = ArtifactCache(config.storage.subtitles_dir, config.storage.max_files)
    _subtitles_cache.initialize()

    # Outbound HTTP clients
    _youtube_client = YouTubeDataClient(config.youtube.api_key, timeout=config.timeouts.http)
    _fallback_client = FallbackMediaClient(
        url=config.fallback_api.url,
        host=config.fallback_api.host,
        api_key=config.fallback_api.api_key,
        timeout=config.timeouts.http,
    )

    # Retrieval pipeline: library listing first, subprocess listing on a stale source
    runner = YtDlpRunner()
    resolver = FormatResolver(
        [
            LibraryFormatLister(socket_timeout=config.timeouts.format_listing),
            SubprocessFormatLister(runner, timeout=config.timeouts.format_listing),
        ]
    )
    _orchestrator = ExtractionOrchestrator(
        resolver=resolver,
        cache=_downloads_cache,
        youtube=_youtube_client,
        runner=runner,
        tool_check=functools.partial(ensure_tools, timeout=config.timeouts.tool_probe),
        download_timeout=config.timeouts.download,
        retries=config.youtube.retries,
        fragment_retries=config.youtube.fragment_retries,
        filename_max_length=config.storage.filename_max_length,
    )
    _subtitle_service = SubtitleService(
        cache=_subtitles_cache,
        caption_source=LibraryCaptionSource(socket_timeout=config.timeouts.format_listing),
        fallback=_fallback_client,
        timeout=config.timeouts.http,
    )

    # Rate limiters
    limits = config.rate_limiting
    _download_limiter = FixedWindowRateLimiter(
        "download", limits.download_points, limits.download_window
    )
    _subtitle_limiter = FixedWindowRateLimiter(
        "subtitle", limits.subtitle_points, limits.subtitle_window
    )
    app.state.file_limiter = FixedWindowRateLimiter("file", limits.file_points, limits.file_window)

    logger.info("application_startup_complete", version=__version__)

    yield

    logger.info("application_shutting_down")

    await _subtitle_service.aclose()
    await _youtube_client.aclose()
    await _fallback_client.aclose()

    logger.info("application_shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Media Gateway",
        description="Media and subtitle retrieval over HTTP, backed by yt-dlp",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ServerConfig().cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
    )

    # Rate limiting runs inside metrics so rejections are counted
    app.add_middleware(FileRateLimitMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # Register global exception handlers
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(APIError, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)

    # Override dependency injection for routers
    app.dependency_overrides[download.get_orchestrator] = get_orchestrator
    app.dependency_overrides[download.get_fallback_client] = get_fallback_client
    app.dependency_overrides[download.get_download_limiter] = get_download_limiter

    app.dependency_overrides[subtitles.get_subtitle_service] = get_subtitle_service
    app.dependency_overrides[subtitles.get_subtitle_limiter] = get_subtitle_limiter

    app.dependency_overrides[metadata.get_youtube_client] = get_youtube_client
    app.dependency_overrides[metadata.get_fallback_client] = get_fallback_client

    app.dependency_overrides[files.get_downloads_cache] = get_downloads_cache
    app.dependency_overrides[files.get_subtitles_cache] = get_subtitles_cache

    # Register routers
    app.include_router(health.router)
    app.include_router(metadata.router)
    app.include_router(download.router)
    app.include_router(subtitles.router)
    app.include_router(files.router)
    app.include_router(metrics.router)

    return app


# Create the application instance
app = create_app()


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    server = ConfigService().load().server
    uvicorn.run(app, host=server.host, port=server.port)  # nosec B104


if __name__ == "__main__":
    main()
