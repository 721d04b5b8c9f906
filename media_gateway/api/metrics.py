"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from media_gateway.api.files import get_downloads_cache, get_subtitles_cache
from media_gateway.core.metrics import MetricsCollector
from media_gateway.services.cache import ArtifactCache

router = APIRouter(tags=["monitoring"])


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics endpoint",
    description="Returns metrics in Prometheus text format for scraping.",
)
async def metrics(
    downloads: ArtifactCache = Depends(get_downloads_cache),  # noqa: B008
    subtitles: ArtifactCache = Depends(get_subtitles_cache),  # noqa: B008
) -> Response:
    """Refresh cache occupancy gauges, then render every metric."""
    MetricsCollector.set_cache_files("downloads", downloads.file_count())
    MetricsCollector.set_cache_files("subtitles", subtitles.file_count())

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
