"""Subtitle conversion and retrieval.

WebVTT is the only source format: YouTube caption tracks are fetched as
VTT and converted to SRT or plain text on the way into the subtitles cache.
"""

import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import httpx
import structlog

from media_gateway.models.media import SubtitleFormat
from media_gateway.providers.exceptions import InvalidURLError, UpstreamAPIError
from media_gateway.providers.fallback_api import FallbackMediaClient
from media_gateway.providers.library import LibraryCaptionSource
from media_gateway.providers.youtube import extract_video_id
from media_gateway.services.cache import ArtifactCache, sanitize_title

logger = structlog.get_logger(__name__)

TIMESTAMP = r"(?:\d{2,}:)?\d{2}:\d{2}\.\d{3}"
TIMING_LINE_PATTERN = re.compile(rf"^({TIMESTAMP})\s+-->\s+({TIMESTAMP})(?:\s.*)?$")
NON_CUE_BLOCK_PATTERN = re.compile(r"^(?:NOTE|STYLE|REGION)(?:\s|$)")


class UnsupportedSubtitleFormatError(ValueError):
    """Raised for a conversion the converter cannot perform."""

    pass


def _drop_non_cue_blocks(lines: List[str]) -> List[str]:
    """Remove NOTE, STYLE and REGION blocks, which run until the next blank line."""
    out: List[str] = []
    skipping = False
    previous_blank = True

    for line in lines:
        stripped = line.strip()
        if previous_blank and NON_CUE_BLOCK_PATTERN.match(stripped):
            skipping = True
        elif not stripped:
            skipping = False
        if not skipping:
            out.append(line)
        previous_blank = not stripped

    return out


def _body_lines(document: str) -> List[str]:
    """Document lines without the WEBVTT header or non-cue blocks."""
    lines = document.lstrip("\ufeff").replace("\r\n", "\n").split("\n")

    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1

    if start < len(lines) and lines[start].startswith("WEBVTT"):
        # Header runs until the first blank line
        end = start + 1
        while end < len(lines) and lines[end].strip():
            end += 1
        return _drop_non_cue_blocks(lines[end + 1 :])

    return _drop_non_cue_blocks(lines[start:])


def _drop_cue_identifier(out: List[str]) -> None:
    """Remove the identifier line opening the current cue block, if any."""
    if out and out[-1].strip() and (len(out) == 1 or not out[-2].strip()):
        out.pop()


def _srt_timestamp(timestamp: str) -> str:
    if timestamp.count(":") == 1:
        timestamp = f"00:{timestamp}"
    return timestamp.replace(".", ",")


def vtt_to_srt(document: str) -> str:
    """
    Convert WebVTT to SRT.

    Cue indices are generated from 1 in the order timing lines appear;
    identifiers present in the source are discarded. Cue settings after the
    end timestamp are dropped since SRT has no equivalent.
    """
    out: List[str] = []
    index = 0

    for line in _body_lines(document):
        match = TIMING_LINE_PATTERN.match(line.strip())
        if not match:
            out.append(line)
            continue

        _drop_cue_identifier(out)
        index += 1
        out.append(str(index))
        out.append(f"{_srt_timestamp(match.group(1))} --> {_srt_timestamp(match.group(2))}")

    return "\n".join(out).strip()


def vtt_to_text(document: str) -> str:
    """Convert WebVTT to plain text, keeping only the spoken lines."""
    out: List[str] = []

    for line in _body_lines(document):
        if TIMING_LINE_PATTERN.match(line.strip()):
            _drop_cue_identifier(out)
            continue
        out.append(line)

    return "\n".join(out).strip()


class SubtitleConverter:
    """Converts subtitle documents between text formats."""

    def convert(
        self,
        document: str,
        to_format: Union[str, SubtitleFormat],
        from_format: Union[str, SubtitleFormat] = SubtitleFormat.VTT,
    ) -> str:
        """
        Convert a subtitle document.

        Args:
            document: Source text
            to_format: Target format
            from_format: Source format (only WebVTT can be converted)

        Returns:
            Converted text; identical formats return the document unchanged

        Raises:
            UnsupportedSubtitleFormatError: For unknown formats or a non-VTT source
        """
        try:
            source = SubtitleFormat(str(getattr(from_format, "value", from_format)).lower())
            target = SubtitleFormat(str(getattr(to_format, "value", to_format)).lower())
        except ValueError as e:
            raise UnsupportedSubtitleFormatError(str(e)) from e

        if source is target:
            return document
        if source is not SubtitleFormat.VTT:
            raise UnsupportedSubtitleFormatError(f"Cannot convert from {source.value}")

        if target is SubtitleFormat.SRT:
            return vtt_to_srt(document)
        return vtt_to_text(document)


@dataclass
class SubtitleResult:
    """A subtitle file written to the subtitles cache."""

    filename: str
    file_path: Path
    selected_language: str


class SubtitleService:
    """Fetches caption tracks, converts them, and stores them in the cache."""

    def __init__(
        self,
        cache: ArtifactCache,
        caption_source: LibraryCaptionSource,
        fallback: FallbackMediaClient,
        converter: Optional[SubtitleConverter] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.cache = cache
        self.caption_source = caption_source
        self.fallback = fallback
        self.converter = converter or SubtitleConverter()
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(
        self,
        url: str,
        platform: str,
        language: str = "en",
        fmt: SubtitleFormat = SubtitleFormat.SRT,
    ) -> SubtitleResult:
        """
        Retrieve subtitles for a URL and write them to the cache.

        Raises:
            InvalidURLError: If a YouTube URL has no video ID
            SubtitlesNotFoundError: If no track is available
            UpstreamAPIError: If the caption or media API fails
        """
        self.cache.directory.mkdir(parents=True, exist_ok=True)

        if platform != "youtube":
            text = await self.fallback.get_subtitle(url, language, fmt.value)
            filename = f"subtitle_{sanitize_title(language or 'en', 20)}_{uuid.uuid4()}.{fmt.value}"
            path = self.cache.write_text(filename, text)
            return SubtitleResult(filename=filename, file_path=path, selected_language=language)

        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidURLError("Invalid YouTube URL")

        track = await self.caption_source.find_track(url, language)
        document = await self._download_track(track.url)

        content = self.converter.convert(document, fmt, from_format=SubtitleFormat.VTT)

        stem = sanitize_title(f"subtitle_{video_id}_{track.language}", 100)
        filename = f"{stem}.{fmt.value}"
        path = self.cache.write_text(filename, content)

        logger.info(
            "subtitle_written",
            video_id=video_id,
            language=track.language,
            format=fmt.value,
            filepath=str(path),
        )
        return SubtitleResult(filename=filename, file_path=path, selected_language=track.language)

    async def _download_track(self, track_url: str) -> str:
        try:
            response = await self._client.get(track_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("caption_download_failed", error=str(e))
            raise UpstreamAPIError(f"Could not download subtitles: {e}", status_code=502) from e
        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()
