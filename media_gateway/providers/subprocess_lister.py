"""Format listing through the yt-dlp executable.

Fallback tier for when the library path reports the resource as stale.
``yt-dlp --list-formats`` prints a human-readable table, so parsing is best
effort: rows start with a numeric format code, and a row is video when the
word "video" appears on it.
"""

import re
from typing import List, Optional

import structlog

from media_gateway.models.media import FormatDescriptor, MediaKind
from media_gateway.providers.base import FormatLister
from media_gateway.providers.exceptions import FormatListingError
from media_gateway.providers.ytdlp import CommandTimeoutError, YtDlpRunner

logger = structlog.get_logger(__name__)

FORMAT_ROW_PATTERN = re.compile(r"^(\d+)\s")


def parse_format_line(line: str) -> Optional[FormatDescriptor]:
    """Parse one ``--list-formats`` row; non-format lines yield None."""
    stripped = line.strip()
    if stripped.startswith("["):
        return None

    match = FORMAT_ROW_PATTERN.match(stripped)
    if not match:
        return None

    fields = stripped.split()
    container = fields[1] if len(fields) > 1 else None

    if "video" in line:
        quality = fields[2] if len(fields) > 2 else None
        return FormatDescriptor(
            format_id=match.group(1), kind=MediaKind.VIDEO, quality=quality, container=container
        )

    return FormatDescriptor(
        format_id=match.group(1), kind=MediaKind.AUDIO, quality="audio", container=container
    )


def parse_format_listing(output: str) -> List[FormatDescriptor]:
    """Parse full ``--list-formats`` output in source order."""
    descriptors = []
    for line in output.splitlines():
        descriptor = parse_format_line(line)
        if descriptor is not None:
            descriptors.append(descriptor)
    return descriptors


class SubprocessFormatLister(FormatLister):
    """Lists formats by running ``yt-dlp --list-formats``."""

    name = "subprocess"

    def __init__(self, runner: Optional[YtDlpRunner] = None, timeout: float = 10.0):
        self.runner = runner or YtDlpRunner()
        self.timeout = timeout

    async def list_formats(self, url: str) -> List[FormatDescriptor]:
        logger.info("listing_formats", strategy=self.name, url=url)

        try:
            result = await self.runner.run(["--list-formats", url], timeout=self.timeout)
        except CommandTimeoutError as e:
            raise FormatListingError(str(e)) from e

        if not result.ok:
            raise FormatListingError(
                f"Could not list formats with yt-dlp: {result.stderr.strip()}"
            )

        descriptors = parse_format_listing(result.stdout)
        logger.info("formats_listed", strategy=self.name, count=len(descriptors))
        return descriptors
