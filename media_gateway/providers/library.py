"""In-process extraction through the yt_dlp library.

This is the cheap first tier: no subprocess, just metadata extraction.
It is brittle against upstream protocol changes; a stale/gone response
(HTTP 410) is surfaced as StaleSourceError so callers can fall back to the
yt-dlp executable.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import structlog
import yt_dlp

from media_gateway.models.media import FormatDescriptor, MediaKind
from media_gateway.providers.base import FormatLister
from media_gateway.providers.exceptions import (
    FormatListingError,
    StaleSourceError,
    SubtitlesNotFoundError,
    UpstreamAPIError,
)

logger = structlog.get_logger(__name__)

STALE_SIGNATURE = re.compile(r"\b410\b")
QUALITY_LABEL_PATTERN = re.compile(r"^\d+p\d*$")

YDL_OPTIONS: Dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "skip_download": True,
    "noplaylist": True,
}


def _extract_info_sync(url: str, options: Dict[str, Any]) -> Dict[str, Any]:
    with yt_dlp.YoutubeDL(options) as ydl:
        info = ydl.extract_info(url, download=False)
    return info or {}


async def extract_info(url: str, socket_timeout: Optional[float] = None) -> Dict[str, Any]:
    """
    Extract metadata without downloading, off the event loop.

    Args:
        url: Content URL
        socket_timeout: Seconds a stalled connection may block before failing

    Raises:
        StaleSourceError: If the source answered with HTTP 410
        FormatListingError: For any other extraction failure
    """
    options = dict(YDL_OPTIONS)
    if socket_timeout is not None:
        options["socket_timeout"] = socket_timeout

    try:
        return await asyncio.to_thread(_extract_info_sync, url, options)
    except yt_dlp.utils.DownloadError as e:
        message = str(e)
        if STALE_SIGNATURE.search(message):
            raise StaleSourceError(message) from e
        raise FormatListingError(message) from e
    except (yt_dlp.utils.YoutubeDLError, OSError) as e:
        raise FormatListingError(f"{type(e).__name__}: {e}") from e


def _has_codec(value: Optional[str]) -> bool:
    return value not in (None, "none")


def _quality_for(fmt: Dict[str, Any], kind: MediaKind) -> Optional[Union[str, int]]:
    if kind is MediaKind.AUDIO:
        abr = fmt.get("abr")
        return int(round(abr)) if abr else None

    note = fmt.get("format_note") or ""
    if QUALITY_LABEL_PATTERN.match(note):
        return note
    height = fmt.get("height")
    return f"{height}p" if height else None


def to_descriptor(fmt: Dict[str, Any]) -> Optional[FormatDescriptor]:
    """
    Map a yt_dlp format dict to a FormatDescriptor.

    Formats carrying neither audio nor video (storyboards) are skipped.
    """
    vcodec = fmt.get("vcodec")
    acodec = fmt.get("acodec")
    if vcodec == "none" and acodec == "none":
        return None

    kind = MediaKind.VIDEO if _has_codec(vcodec) else MediaKind.AUDIO
    return FormatDescriptor(
        format_id=str(fmt.get("format_id", "")),
        kind=kind,
        quality=_quality_for(fmt, kind),
        container=fmt.get("ext"),
    )


class LibraryFormatLister(FormatLister):
    """Lists formats through the yt_dlp library."""

    name = "library"

    def __init__(self, socket_timeout: Optional[float] = None):
        self.socket_timeout = socket_timeout

    async def list_formats(self, url: str) -> List[FormatDescriptor]:
        logger.info("listing_formats", strategy=self.name, url=url)
        info = await extract_info(url, socket_timeout=self.socket_timeout)

        descriptors = []
        for fmt in info.get("formats") or []:
            descriptor = to_descriptor(fmt)
            if descriptor is not None and descriptor.format_id:
                descriptors.append(descriptor)

        logger.info("formats_listed", strategy=self.name, count=len(descriptors))
        return descriptors


@dataclass
class CaptionTrack:
    """A downloadable caption track."""

    language: str
    url: str
    ext: str


def select_caption_track(info: Dict[str, Any], language: str) -> CaptionTrack:
    """
    Pick the caption track for a language, or the first available one.

    Manual subtitles are listed before automatic captions; WebVTT renditions
    are preferred within a language.

    Raises:
        SubtitlesNotFoundError: If the content has no caption tracks
    """
    tracks: Dict[str, List[Dict[str, Any]]] = {}
    for source in ("subtitles", "automatic_captions"):
        for lang, renditions in (info.get(source) or {}).items():
            if renditions and lang not in tracks:
                tracks[lang] = renditions

    if not tracks:
        raise SubtitlesNotFoundError("The video has no subtitles")

    selected = language if language in tracks else next(iter(tracks))
    renditions = tracks[selected]
    rendition = next((r for r in renditions if r.get("ext") == "vtt"), renditions[0])
    return CaptionTrack(language=selected, url=rendition["url"], ext=rendition.get("ext", ""))


class LibraryCaptionSource:
    """Finds caption tracks through the yt_dlp library."""

    def __init__(self, socket_timeout: Optional[float] = None):
        self.socket_timeout = socket_timeout

    async def find_track(self, url: str, language: str) -> CaptionTrack:
        """
        Raises:
            SubtitlesNotFoundError: If no track exists
            UpstreamAPIError: If extraction fails
        """
        try:
            info = await extract_info(url, socket_timeout=self.socket_timeout)
        except StaleSourceError as e:
            raise UpstreamAPIError(
                "Could not fetch subtitles: YouTube returned status 410. "
                "Try another video or check the connection."
            ) from e
        except FormatListingError as e:
            raise UpstreamAPIError(f"Could not fetch subtitles: {e}") from e

        track = select_caption_track(info, language)
        logger.info(
            "caption_track_selected",
            requested_language=language,
            selected_language=track.language,
            ext=track.ext,
        )
        return track
