"""Health check endpoint.

Reports availability of the external tools retrieval depends on and of the
cache directories.
"""

import asyncio
import os
import time
from datetime import datetime, timezone
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from media_gateway import __version__
from media_gateway.api.files import get_downloads_cache, get_subtitles_cache
from media_gateway.api.schemas import ComponentHealth, HealthResponse
from media_gateway.core.checks import check_ffmpeg, check_ytdlp
from media_gateway.services.cache import ArtifactCache

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])

# Track application start time for uptime calculation
_start_time: float = time.time()


def reset_start_time() -> None:
    """Reset the start time (for testing)."""
    global _start_time
    _start_time = time.time()


async def _check_ytdlp() -> ComponentHealth:
    result = await check_ytdlp()
    if result.available:
        return ComponentHealth(status="healthy", version=result.version)
    return ComponentHealth(
        status="unhealthy",
        details={"error": result.error or "yt-dlp not available"},
    )


async def _check_ffmpeg() -> ComponentHealth:
    result = await check_ffmpeg()
    if result.available:
        return ComponentHealth(status="healthy", version=result.version)
    return ComponentHealth(
        status="unhealthy",
        details={"error": result.error or "ffmpeg not available"},
    )


def _check_cache(cache: ArtifactCache) -> ComponentHealth:
    """Check that a cache directory exists and is writable."""
    directory = cache.directory
    if not directory.is_dir():
        return ComponentHealth(
            status="unhealthy",
            details={"error": f"Directory does not exist: {directory}"},
        )
    if not os.access(directory, os.W_OK):
        return ComponentHealth(
            status="unhealthy",
            details={"error": f"Directory is not writable: {directory}"},
        )

    return ComponentHealth(
        status="healthy",
        details={"files": cache.file_count(), "max_files": cache.max_files},
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All components healthy"},
        503: {"description": "One or more components unhealthy"},
    },
)
async def health_check(
    downloads: ArtifactCache = Depends(get_downloads_cache),  # noqa: B008
    subtitles: ArtifactCache = Depends(get_subtitles_cache),  # noqa: B008
) -> JSONResponse:
    """
    Detailed health check endpoint.

    Verifies:
    - yt-dlp availability and version
    - ffmpeg availability and version
    - downloads and subtitles directories

    Returns HTTP 200 if all components are healthy,
    HTTP 503 if any component is unhealthy.
    """
    ytdlp_health, ffmpeg_health = await asyncio.gather(_check_ytdlp(), _check_ffmpeg())

    components = {
        "ytdlp": ytdlp_health,
        "ffmpeg": ffmpeg_health,
        "downloads": _check_cache(downloads),
        "subtitles": _check_cache(subtitles),
    }

    all_healthy = all(c.status == "healthy" for c in components.values())
    overall_status: Literal["healthy", "unhealthy"] = "healthy" if all_healthy else "unhealthy"

    response = HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 2),
        components=components,
    )

    status_code = status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE

    logger.info(
        "health_check_completed",
        status=overall_status,
        components={k: v.status for k, v in components.items()},
    )

    return JSONResponse(content=response.model_dump(), status_code=status_code)
