"""Media retrieval gateway built on yt-dlp."""

__version__ = "1.0.0"
