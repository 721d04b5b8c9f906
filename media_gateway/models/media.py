"""Media retrieval data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union


class MediaKind(str, Enum):
    """Kind of media a format carries or a request wants."""

    VIDEO = "video"
    AUDIO = "audio"

    @property
    def extension(self) -> str:
        """File extension of the produced artifact."""
        return "mp4" if self is MediaKind.VIDEO else "mp3"


class QualityTier(str, Enum):
    """Coarse user-facing quality preference."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Optional[str]) -> "QualityTier":
        """Parse a raw tier, falling back to HIGH for anything unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return cls.HIGH


# Ordered quality label preferences per tier
QUALITY_PREFERENCES: Dict[QualityTier, List[str]] = {
    QualityTier.HIGH: ["1080p", "720p"],
    QualityTier.MEDIUM: ["720p", "480p"],
    QualityTier.LOW: ["360p", "240p"],
}


class SubtitleFormat(str, Enum):
    """Subtitle text formats."""

    VTT = "vtt"
    SRT = "srt"
    TXT = "txt"


class ErrorKind(str, Enum):
    """Categories of retrieval failure."""

    INVALID_INPUT = "InvalidInput"
    CONTENT_UNAVAILABLE = "ContentUnavailable"
    NO_FORMAT_AVAILABLE = "NoFormatAvailable"
    TOOL_MISSING = "ToolMissing"
    EXTRACTION_TIMEOUT = "ExtractionTimeout"
    NETWORK_FAULT = "NetworkFault"
    FORMAT_REJECTED = "FormatRejected"
    POSTPROCESS_FAILURE = "PostprocessFailure"
    EMPTY_ARTIFACT = "EmptyArtifact"
    EXTRACTION_FAILED = "ExtractionFailed"


@dataclass(frozen=True)
class FormatDescriptor:
    """One retrievable encoding of a piece of content."""

    format_id: str
    kind: MediaKind
    quality: Optional[Union[str, int]] = None  # e.g. "1080p" or 128 (kbps)
    container: Optional[str] = None  # e.g. "mp4", "webm"


@dataclass
class RetrievalRequest:
    """A single download request."""

    source_url: str
    media_kind: MediaKind
    quality_tier: Optional[str] = None
    destination_dir: Optional[str] = None


@dataclass
class ExtractionSuccess:
    """Artifact produced or found in the cache."""

    file_path: str
    size_bytes: int
    cache_hit: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass
class ExtractionFailure:
    """Classified retrieval failure."""

    kind: ErrorKind
    message: str
    raw_diagnostic: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False


ExtractionOutcome = Union[ExtractionSuccess, ExtractionFailure]
