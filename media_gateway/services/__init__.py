"""Service layer implementations."""

from media_gateway.services.cache import (
    ArtifactCache,
    StorageError,
    evict_oldest_if_over_limit,
    sanitize_title,
)
from media_gateway.services.extraction import ExtractionOrchestrator
from media_gateway.services.format_resolver import FormatResolver, select_format
from media_gateway.services.subtitles import (
    SubtitleConverter,
    SubtitleResult,
    SubtitleService,
    UnsupportedSubtitleFormatError,
)

__all__ = [
    # Cache
    "ArtifactCache",
    "StorageError",
    "evict_oldest_if_over_limit",
    "sanitize_title",
    # Retrieval
    "ExtractionOrchestrator",
    "FormatResolver",
    "select_format",
    # Subtitles
    "SubtitleConverter",
    "SubtitleResult",
    "SubtitleService",
    "UnsupportedSubtitleFormatError",
]
