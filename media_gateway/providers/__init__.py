"""Source integrations: yt-dlp (library and executable) and HTTP APIs."""

from media_gateway.providers.base import FormatLister
from media_gateway.providers.exceptions import (
    FormatListingError,
    InvalidURLError,
    ProviderError,
    StaleSourceError,
    SubtitlesNotFoundError,
    ToolMissingError,
    UpstreamAPIError,
)
from media_gateway.providers.fallback_api import FallbackMediaClient
from media_gateway.providers.library import LibraryCaptionSource, LibraryFormatLister
from media_gateway.providers.subprocess_lister import SubprocessFormatLister
from media_gateway.providers.youtube import YouTubeDataClient, extract_video_id
from media_gateway.providers.ytdlp import CommandResult, CommandTimeoutError, YtDlpRunner

__all__ = [
    "FormatLister",
    "FallbackMediaClient",
    "LibraryCaptionSource",
    "LibraryFormatLister",
    "SubprocessFormatLister",
    "YouTubeDataClient",
    "extract_video_id",
    "CommandResult",
    "CommandTimeoutError",
    "YtDlpRunner",
    "ProviderError",
    "InvalidURLError",
    "StaleSourceError",
    "FormatListingError",
    "ToolMissingError",
    "SubtitlesNotFoundError",
    "UpstreamAPIError",
]
