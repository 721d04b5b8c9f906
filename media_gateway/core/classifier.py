"""Classification of yt-dlp diagnostic output into error kinds.

yt-dlp reports failures only through its exit code and free-form stderr, so
classification is substring based. Rules are checked in order and the first
match wins, because a single diagnostic often contains several of the
signatures (a postprocessing failure mentions ffmpeg, for example).
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from media_gateway.models.media import ErrorKind


@dataclass(frozen=True)
class ClassifiedError:
    """Kind and user-facing message for a failed extraction."""

    kind: ErrorKind
    message: str


# (signature, kind, message); order is significant
DIAGNOSTIC_RULES: List[Tuple[str, ErrorKind, str]] = [
    (
        "ENOENT",
        ErrorKind.TOOL_MISSING,
        "yt-dlp was not found. Install yt-dlp and try again.",
    ),
    (
        "ffmpeg",
        ErrorKind.TOOL_MISSING,
        "FFmpeg is not installed. Install ffmpeg and try again.",
    ),
    (
        "video unavailable",
        ErrorKind.NETWORK_FAULT,
        "The video is unavailable or region restricted. Try another video.",
    ),
    (
        "HTTP Error 403",
        ErrorKind.NETWORK_FAULT,
        "HTTP 403: access denied. The video may be DRM protected.",
    ),
    (
        "Requested format is not available",
        ErrorKind.FORMAT_REJECTED,
        "The requested format is not available. Please try again.",
    ),
    (
        "DRM protected",
        ErrorKind.NETWORK_FAULT,
        "The video is DRM protected. Try a video without copy protection.",
    ),
    (
        "SABR streaming",
        ErrorKind.FORMAT_REJECTED,
        "YouTube is using SABR streaming and some formats are unavailable. Try another video.",
    ),
    (
        "Postprocessing",
        ErrorKind.POSTPROCESS_FAILURE,
        "Postprocessing failed: incompatible stream. Check the FFmpeg version.",
    ),
    (
        "Syntax error",
        ErrorKind.EXTRACTION_FAILED,
        "Command syntax error. Please try again.",
    ),
]


def classify_diagnostic(diagnostic: Optional[str]) -> ClassifiedError:
    """
    Map a yt-dlp stderr stream to the first matching error kind.

    Args:
        diagnostic: Raw stderr text (may be empty)

    Returns:
        ClassifiedError; unmatched text yields EXTRACTION_FAILED carrying the
        raw diagnostic in its message
    """
    text = diagnostic or ""
    for signature, kind, message in DIAGNOSTIC_RULES:
        if signature in text:
            return ClassifiedError(kind=kind, message=message)

    detail = text.strip()
    return ClassifiedError(
        kind=ErrorKind.EXTRACTION_FAILED,
        message=f"Could not download content: {detail}" if detail else "Could not download content",
    )
