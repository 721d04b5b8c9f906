"""Data models for the application."""

from media_gateway.models.media import (
    QUALITY_PREFERENCES,
    ErrorKind,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    FormatDescriptor,
    MediaKind,
    QualityTier,
    RetrievalRequest,
    SubtitleFormat,
)

__all__ = [
    "QUALITY_PREFERENCES",
    "ErrorKind",
    "ExtractionFailure",
    "ExtractionOutcome",
    "ExtractionSuccess",
    "FormatDescriptor",
    "MediaKind",
    "QualityTier",
    "RetrievalRequest",
    "SubtitleFormat",
]
