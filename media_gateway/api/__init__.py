"""API endpoints."""

from media_gateway.api import download, files, health, metadata, metrics, subtitles

__all__ = [
    "download",
    "files",
    "health",
    "metadata",
    "metrics",
    "subtitles",
]
