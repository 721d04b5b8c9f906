"""Request and response schemas for API endpoints.

This module provides Pydantic models for API request validation
and response serialization with OpenAPI examples.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class _SourceRequest(BaseModel):
    """Fields shared by every request that names a source."""

    url: str = Field(
        ..., description="Source URL", examples=["https://www.youtube.com/watch?v=dQw4w9WgXcQ"]
    )
    platform: str = Field(..., description="Source platform", examples=["youtube", "tiktok"])

    @field_validator("url", "platform")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty strings."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, v: str) -> str:
        return v.lower()


class MetadataRequest(_SourceRequest):
    """Request body for the metadata endpoint."""

    pass


class MetadataResponse(BaseModel):
    """Title and thumbnail for a source."""

    title: str = Field(..., examples=["Rick Astley - Never Gonna Give You Up"])
    thumbnail: str = Field("", examples=["https://img.youtube.com/vi/dQw4w9WgXcQ/hqdefault.jpg"])


class DownloadRequest(_SourceRequest):
    """Request body for the download endpoint."""

    type: Literal["video", "audio"] = Field(..., description="Media kind to produce")
    quality: Optional[str] = Field(
        None,
        description="Quality tier (high, medium, low); unrecognized values mean high",
        examples=["high"],
    )


class DownloadResponse(BaseModel):
    """Where the produced file can be fetched."""

    success: bool = True
    download_url: str = Field(..., examples=["/downloads/Never_Gonna_Give_You_Up_high.mp4"])


class SubtitleRequest(_SourceRequest):
    """Request body for the subtitle endpoint."""

    target_language: str = Field("en", description="Preferred caption language", examples=["en"])
    format_preference: Literal["srt", "vtt", "txt"] = Field(
        "srt", description="Output subtitle format"
    )

    @field_validator("format_preference", mode="before")
    @classmethod
    def lowercase_format(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class SubtitleResponse(BaseModel):
    """Where the subtitle file can be fetched, and which language was used."""

    success: bool = True
    download_url: str = Field(..., examples=["/subtitles/subtitle_dQw4w9WgXcQ_en.srt"])
    selected_language: str = Field(..., examples=["en"])


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: Literal["healthy", "unhealthy"]
    version: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    timestamp: str
    version: str
    uptime_seconds: float
    components: Dict[str, ComponentHealth]
