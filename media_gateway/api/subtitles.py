"""Subtitle endpoints.

- POST /api/download-subtitle: fetch, convert and cache subtitles
- GET /api/download-subtitle: usage hint (405)
"""

from typing import Any
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, Request

from media_gateway.api.schemas import SubtitleRequest, SubtitleResponse
from media_gateway.core.errors import APIError, ErrorCode
from media_gateway.core.rate_limiter import FixedWindowRateLimiter
from media_gateway.models.media import SubtitleFormat
from media_gateway.services.subtitles import SubtitleService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["subtitles"])

USAGE_MESSAGE = (
    "Method not allowed. Send a POST request to /api/download-subtitle with a JSON "
    'body containing url, platform, target_language (default "en") and '
    'format_preference (default "srt").'
)


# Dependency placeholders (to be configured in main app)
async def get_subtitle_service() -> SubtitleService:
    """Get subtitle service instance."""
    raise NotImplementedError("Subtitle service dependency not configured")


async def get_subtitle_limiter() -> FixedWindowRateLimiter:
    """Get per-client subtitle rate limiter."""
    raise NotImplementedError("Subtitle rate limiter dependency not configured")


def client_address(http_request: Request) -> str:
    return http_request.client.host if http_request.client else "unknown"


@router.post(
    "/download-subtitle",
    response_model=SubtitleResponse,
    responses={
        400: {"description": "Invalid request"},
        404: {"description": "No subtitles available"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def download_subtitle(
    request: SubtitleRequest,
    http_request: Request,
    service: SubtitleService = Depends(get_subtitle_service),  # noqa: B008
    limiter: FixedWindowRateLimiter = Depends(get_subtitle_limiter),  # noqa: B008
) -> Any:
    """
    Produce a subtitle file for a source URL.

    The requested language is used when the source has it; otherwise the
    first available track is returned and reported in ``selected_language``.

    Raises:
        APIError: For invalid URLs
        SubtitlesNotFoundError: If the source has no subtitles
        UpstreamAPIError: If caption retrieval fails
        RateLimitExceededError: If the client exceeded its budget
    """
    limiter.consume(f"download_subtitle_{client_address(http_request)}")

    logger.info(
        "subtitle_requested",
        url=request.url,
        platform=request.platform,
        target_language=request.target_language,
        format=request.format_preference,
    )

    result = await service.fetch(
        request.url,
        request.platform,
        language=request.target_language,
        fmt=SubtitleFormat(request.format_preference),
    )

    return SubtitleResponse(
        download_url=f"/subtitles/{quote(result.filename)}",
        selected_language=result.selected_language,
    )


@router.get("/download-subtitle", include_in_schema=False)
async def download_subtitle_usage() -> Any:
    """Reject GET with a usage hint."""
    raise APIError(ErrorCode.METHOD_NOT_ALLOWED, USAGE_MESSAGE)
