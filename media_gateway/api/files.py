"""Cached file endpoints.

- GET /downloads/{filename}: produced media files
- GET /subtitles/{filename}: produced subtitle files
"""

from pathlib import Path

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from media_gateway.core.errors import APIError, ErrorCode
from media_gateway.services.cache import ArtifactCache

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["files"])


# Dependency placeholders (to be configured in main app)
async def get_downloads_cache() -> ArtifactCache:
    """Get downloads cache instance."""
    raise NotImplementedError("Downloads cache dependency not configured")


async def get_subtitles_cache() -> ArtifactCache:
    """Get subtitles cache instance."""
    raise NotImplementedError("Subtitles cache dependency not configured")


def resolve_cached_file(cache: ArtifactCache, filename: str) -> Path:
    """
    Map a requested filename to a file inside the cache directory.

    Raises:
        APIError: FILE_NOT_FOUND if the name is not a bare filename or the
            file does not exist
    """
    if not filename or Path(filename).name != filename or filename in (".", ".."):
        logger.warning("file_request_rejected", filename=filename)
        raise APIError(ErrorCode.FILE_NOT_FOUND, "File not found.")

    path = cache.path_for(filename)
    if not path.is_file():
        logger.info("file_not_found", filepath=str(path))
        raise APIError(ErrorCode.FILE_NOT_FOUND, "File not found.")

    return path


@router.get(
    "/downloads/{filename}",
    response_class=FileResponse,
    responses={404: {"description": "File not found"}, 500: {"description": "Empty file"}},
)
async def serve_download(
    filename: str,
    cache: ArtifactCache = Depends(get_downloads_cache),  # noqa: B008
) -> FileResponse:
    """Serve a produced media file as an attachment.

    A zero-size file is deleted and reported as an error.
    """
    path = resolve_cached_file(cache, filename)

    if path.stat().st_size == 0:
        logger.error("empty_download_removed", filepath=str(path))
        path.unlink(missing_ok=True)
        raise APIError(ErrorCode.EMPTY_ARTIFACT, "The downloaded file is empty. Please try again.")

    logger.info("file_served", filepath=str(path))
    return FileResponse(path, filename=filename)


@router.get(
    "/subtitles/{filename}",
    response_class=FileResponse,
    responses={404: {"description": "File not found"}},
)
async def serve_subtitle(
    filename: str,
    cache: ArtifactCache = Depends(get_subtitles_cache),  # noqa: B008
) -> FileResponse:
    """Serve a produced subtitle file as an attachment."""
    path = resolve_cached_file(cache, filename)
    logger.info("file_served", filepath=str(path))
    return FileResponse(path, filename=filename)
