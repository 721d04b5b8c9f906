"""YouTube URL handling and Data API client."""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from media_gateway.providers.exceptions import UpstreamAPIError

logger = structlog.get_logger(__name__)

# Tried in order; the first capture group is the video ID
VIDEO_ID_PATTERNS = [
    re.compile(r"[?&]v=([^&]+)"),
    re.compile(r"youtu\.be/([^?&]+)"),
]


def extract_video_id(url: str) -> Optional[str]:
    """
    Extract the video ID from a YouTube watch or short-link URL.

    Args:
        url: YouTube URL

    Returns:
        Video ID if found, None otherwise
    """
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url or "")
        if match:
            return match.group(1)
    return None


def default_thumbnail(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


@dataclass
class Availability:
    """Result of a content status check."""

    is_available: bool
    reason: Optional[str] = None


@dataclass
class Snippet:
    """Title and thumbnail of a video."""

    title: str
    thumbnail: Optional[str] = None


class YouTubeDataClient:
    """Read-only client for the YouTube Data API v3 ``videos`` resource."""

    BASE_URL = "https://www.googleapis.com/youtube/v3/videos"

    def __init__(
        self,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def enabled(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.api_key)

    async def _get_item(self, video_id: str, part: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self._client.get(
                self.BASE_URL,
                params={"part": part, "id": video_id, "key": self.api_key},
            )
            response.raise_for_status()
            items = response.json().get("items") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("youtube_api_request_failed", video_id=video_id, part=part, error=str(e))
            raise UpstreamAPIError(f"YouTube Data API request failed: {e}", status_code=502) from e

        return items[0] if items else None

    async def check_availability(self, video_id: str) -> Availability:
        """
        Check whether a video exists and has finished processing.

        API failures are reported as unavailable rather than raised.
        """
        try:
            item = await self._get_item(video_id, "status")
        except UpstreamAPIError:
            return Availability(False, "Could not verify video availability.")

        if item is None:
            return Availability(False, "The video does not exist or has been removed.")

        upload_status = (item.get("status") or {}).get("uploadStatus")
        if upload_status != "processed":
            return Availability(False, "The video has not finished processing.")

        return Availability(True)

    async def get_snippet(self, video_id: str) -> Optional[Snippet]:
        """
        Fetch title and best thumbnail.

        Raises:
            UpstreamAPIError: If the API request fails
        """
        item = await self._get_item(video_id, "snippet")
        if item is None:
            return None

        snippet = item.get("snippet") or {}
        thumbnails = snippet.get("thumbnails") or {}
        thumbnail = (thumbnails.get("high") or thumbnails.get("default") or {}).get("url")
        return Snippet(title=snippet.get("title") or "", thumbnail=thumbnail)

    async def aclose(self) -> None:
        await self._client.aclose()
