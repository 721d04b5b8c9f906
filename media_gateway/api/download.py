"""Media download endpoint.

- POST /api/download: YouTube sources go through the extraction
  orchestrator and are served from the downloads cache; any other platform
  is relayed to the third-party media API.
"""

from pathlib import Path
from typing import Any
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends

from media_gateway.api.schemas import DownloadRequest, DownloadResponse
from media_gateway.core.errors import APIError, ErrorCode, api_error_from_failure
from media_gateway.core.rate_limiter import FixedWindowRateLimiter
from media_gateway.models.media import ExtractionFailure, MediaKind, RetrievalRequest
from media_gateway.providers.fallback_api import FallbackMediaClient
from media_gateway.services.extraction import ExtractionOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["download"])

# Single global budget shared by every client
DOWNLOAD_LIMITER_KEY = "download_endpoint"


# Dependency placeholders (to be configured in main app)
async def get_orchestrator() -> ExtractionOrchestrator:
    """Get extraction orchestrator instance."""
    raise NotImplementedError("Extraction orchestrator dependency not configured")


async def get_fallback_client() -> FallbackMediaClient:
    """Get fallback media API client."""
    raise NotImplementedError("Fallback media client dependency not configured")


async def get_download_limiter() -> FixedWindowRateLimiter:
    """Get download endpoint rate limiter."""
    raise NotImplementedError("Download rate limiter dependency not configured")


@router.post(
    "/download",
    response_model=DownloadResponse,
    responses={
        400: {"description": "Invalid request or no usable format"},
        403: {"description": "Video unavailable"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Extraction failed or tool missing"},
        502: {"description": "Source refused access"},
        504: {"description": "Extraction timed out"},
    },
)
async def download_media(
    request: DownloadRequest,
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),  # noqa: B008
    fallback: FallbackMediaClient = Depends(get_fallback_client),  # noqa: B008
    limiter: FixedWindowRateLimiter = Depends(get_download_limiter),  # noqa: B008
) -> Any:
    """
    Produce a video or audio file for a source URL.

    Args:
        request: Download request body
        orchestrator: Extraction orchestrator
        fallback: Third-party media API client for non-YouTube platforms
        limiter: Global download rate limiter

    Returns:
        DownloadResponse with a relative URL for YouTube sources, or the
        direct link returned by the media API otherwise

    Raises:
        APIError: If the retrieval fails
        RateLimitExceededError: If the global budget is spent
    """
    limiter.consume(DOWNLOAD_LIMITER_KEY)

    logger.info(
        "download_requested",
        url=request.url,
        platform=request.platform,
        media_kind=request.type,
        quality=request.quality,
    )

    media_kind = MediaKind(request.type)

    if request.platform != "youtube":
        data = await fallback.get_media_links(request.url, request.quality)
        link = data.get(media_kind.value)
        if not link:
            raise APIError(
                ErrorCode.NO_FORMAT_AVAILABLE,
                f"No {media_kind.value} content was found to download.",
            )
        return DownloadResponse(download_url=str(link))

    outcome = await orchestrator.retrieve(
        RetrievalRequest(
            source_url=request.url,
            media_kind=media_kind,
            quality_tier=request.quality,
        )
    )
    if isinstance(outcome, ExtractionFailure):
        raise api_error_from_failure(outcome)

    filename = Path(outcome.file_path).name
    logger.info(
        "download_ready",
        filename=filename,
        size_bytes=outcome.size_bytes,
        cache_hit=outcome.cache_hit,
    )
    return DownloadResponse(download_url=f"/downloads/{quote(filename)}")
