"""Metadata endpoint.

- POST /api/metadata: title and thumbnail preview for a source URL
"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends

from media_gateway.api.schemas import MetadataRequest, MetadataResponse
from media_gateway.providers.exceptions import UpstreamAPIError
from media_gateway.providers.fallback_api import FallbackMediaClient
from media_gateway.providers.youtube import YouTubeDataClient, default_thumbnail, extract_video_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["metadata"])

PLACEHOLDER_TITLES: Dict[str, str] = {
    "youtube": "Sample YouTube video",
    "tiktok": "Sample TikTok/Douyin video",
    "douyin": "Sample TikTok/Douyin video",
    "facebook": "Sample Facebook video",
    "instagram": "Sample Instagram post",
    "twitter": "Sample tweet",
}
DEFAULT_PLACEHOLDER_TITLE = "Sample video title"


def placeholder_title(platform: str) -> str:
    return PLACEHOLDER_TITLES.get(platform, DEFAULT_PLACEHOLDER_TITLE)


# Dependency placeholders (to be configured in main app)
async def get_youtube_client() -> YouTubeDataClient:
    """Get YouTube Data API client."""
    raise NotImplementedError("YouTube client dependency not configured")


async def get_fallback_client() -> FallbackMediaClient:
    """Get fallback media API client."""
    raise NotImplementedError("Fallback media client dependency not configured")


@router.post("/metadata", response_model=MetadataResponse)
async def get_metadata(
    request: MetadataRequest,
    youtube: YouTubeDataClient = Depends(get_youtube_client),  # noqa: B008
    fallback: FallbackMediaClient = Depends(get_fallback_client),  # noqa: B008
) -> Any:
    """
    Get a title and thumbnail for a source.

    Lookup failures never fail the request: a placeholder title is
    returned instead so clients can always render a preview.
    """
    if request.platform == "youtube":
        return await _youtube_metadata(request.url, youtube)

    try:
        metadata = await fallback.get_metadata(request.url)
    except UpstreamAPIError as e:
        logger.warning("metadata_lookup_failed", platform=request.platform, error=str(e))
        return MetadataResponse(title=placeholder_title(request.platform))

    return MetadataResponse(
        title=metadata.get("title") or placeholder_title(request.platform),
        thumbnail=metadata.get("thumbnail") or "",
    )


async def _youtube_metadata(url: str, youtube: YouTubeDataClient) -> MetadataResponse:
    video_id = extract_video_id(url)
    if not video_id:
        return MetadataResponse(title=placeholder_title("youtube"))

    fallback = MetadataResponse(
        title=f"Video YouTube - {video_id}",
        thumbnail=default_thumbnail(video_id),
    )
    if not youtube.enabled:
        return fallback

    try:
        snippet = await youtube.get_snippet(video_id)
    except UpstreamAPIError as e:
        logger.warning("metadata_lookup_failed", platform="youtube", error=str(e))
        return fallback

    if snippet is None:
        return fallback

    return MetadataResponse(
        title=snippet.title or fallback.title,
        thumbnail=snippet.thumbnail or fallback.thumbnail,
    )
