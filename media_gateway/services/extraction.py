"""Extraction orchestration.

Drives a retrieval from URL to cached file: validation, availability and
title lookups, cache short-circuit, eviction, format selection, the yt-dlp
run itself, and classification of its failure output. Metadata goes through
the cheap library path (see FormatResolver); the media itself is always
fetched by the yt-dlp executable, which is heavier but more resilient.
"""

import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import structlog

from media_gateway.core.checks import ensure_tools
from media_gateway.core.classifier import classify_diagnostic
from media_gateway.core.metrics import MetricsCollector
from media_gateway.models.media import (
    ErrorKind,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    MediaKind,
    RetrievalRequest,
)
from media_gateway.providers.exceptions import UpstreamAPIError
from media_gateway.providers.youtube import YouTubeDataClient, extract_video_id
from media_gateway.providers.ytdlp import CommandTimeoutError, YtDlpRunner
from media_gateway.services.cache import ArtifactCache, sanitize_title
from media_gateway.services.format_resolver import FormatResolver

logger = structlog.get_logger(__name__)


class ExtractionOrchestrator:
    """Retrieves media for a request, returning a tagged outcome.

    Only a missing external tool is raised (ToolMissingError); every other
    problem is returned as an ExtractionFailure.
    """

    def __init__(
        self,
        resolver: FormatResolver,
        cache: ArtifactCache,
        youtube: YouTubeDataClient,
        runner: Optional[YtDlpRunner] = None,
        tool_check: Optional[Callable[[], Awaitable[None]]] = None,
        download_timeout: float = 300.0,
        retries: int = 5,
        fragment_retries: int = 5,
        filename_max_length: int = 50,
    ):
        self.resolver = resolver
        self.cache = cache
        self.youtube = youtube
        self.runner = runner or YtDlpRunner()
        self.tool_check = tool_check or ensure_tools
        self.download_timeout = download_timeout
        self.retries = retries
        self.fragment_retries = fragment_retries
        self.filename_max_length = filename_max_length

    async def retrieve(self, request: RetrievalRequest) -> ExtractionOutcome:
        """
        Produce the artifact for a request.

        Args:
            request: Retrieval request

        Returns:
            ExtractionSuccess or ExtractionFailure

        Raises:
            ToolMissingError: If yt-dlp or ffmpeg is not invocable
        """
        await self.tool_check()

        url = request.source_url
        video_id = extract_video_id(url)
        if not video_id:
            return self._fail(ErrorKind.INVALID_INPUT, "Invalid YouTube URL")

        if self.youtube.enabled:
            availability = await self.youtube.check_availability(video_id)
            if not availability.is_available:
                return self._fail(
                    ErrorKind.CONTENT_UNAVAILABLE,
                    availability.reason or "The video is not available.",
                )

        title = await self._resolve_title(video_id)
        filename = self.build_filename(title, request.quality_tier, request.media_kind)

        cache = self.cache
        if request.destination_dir:
            cache = ArtifactCache(request.destination_dir, max_files=self.cache.max_files)
        cache.directory.mkdir(parents=True, exist_ok=True)

        cached = cache.lookup(filename)
        if cached is not None:
            logger.info("cache_hit", filepath=str(cached))
            MetricsCollector.record_cache_hit()
            MetricsCollector.record_retrieval("cache_hit")
            return ExtractionSuccess(
                file_path=str(cached), size_bytes=cached.stat().st_size, cache_hit=True
            )

        cache.evict()

        format_id = await self.resolver.resolve(url, request.quality_tier, request.media_kind)
        if format_id is None:
            return self._fail(ErrorKind.NO_FORMAT_AVAILABLE, "No available format was found.")

        output_path = cache.path_for(filename)
        args = self.build_arguments(url, output_path, format_id, request.media_kind)

        logger.info(
            "extraction_started",
            video_id=video_id,
            format_id=format_id,
            media_kind=request.media_kind.value,
            output_path=str(output_path),
        )
        start_time = time.monotonic()

        try:
            result = await self.runner.run(args, timeout=self.download_timeout)
        except CommandTimeoutError:
            output_path.unlink(missing_ok=True)
            return self._fail(
                ErrorKind.EXTRACTION_TIMEOUT,
                "Downloading the content timed out. Please try again on a more stable network.",
            )

        duration = time.monotonic() - start_time

        if not result.ok:
            # --no-part writes straight to the cached name
            output_path.unlink(missing_ok=True)
            classified = classify_diagnostic(result.stderr)
            logger.error(
                "extraction_failed",
                video_id=video_id,
                exit_code=result.returncode,
                error_kind=classified.kind.value,
                stderr_preview=result.stderr[:500],
            )
            return self._fail(classified.kind, classified.message, result.stderr, duration)

        return self._verify_output(output_path, duration)

    async def _resolve_title(self, video_id: str) -> str:
        """Source title, or a placeholder when it cannot be looked up."""
        fallback = f"Video_YouTube_{video_id}"
        if not self.youtube.enabled:
            return fallback

        try:
            snippet = await self.youtube.get_snippet(video_id)
        except UpstreamAPIError as e:
            logger.warning("title_lookup_failed", video_id=video_id, error=str(e))
            return fallback

        if snippet is None or not snippet.title:
            return fallback
        return snippet.title

    def build_filename(self, title: str, quality: Optional[str], media_kind: MediaKind) -> str:
        """Deterministic cache filename: ``<title>[_<quality>].<ext>``."""
        stem = sanitize_title(title, self.filename_max_length) or "unnamed"
        if quality:
            stem = f"{stem}_{sanitize_title(quality, self.filename_max_length)}"
        return f"{stem}.{media_kind.extension}"

    def build_arguments(
        self, url: str, output_path: Path, format_id: str, media_kind: MediaKind
    ) -> List[str]:
        """yt-dlp arguments for a download."""
        args = [url, "--output", str(output_path)]

        if media_kind is MediaKind.VIDEO:
            args.extend(["--merge-output-format", "mp4", "--format", format_id])
        else:
            args.extend(["--extract-audio", "--audio-format", "mp3", "--format", format_id])

        args.extend(
            [
                "--no-part",
                "--retries",
                str(self.retries),
                "--fragment-retries",
                str(self.fragment_retries),
            ]
        )

        # Single-stream video may not be mp4 already; merged selectors are
        # handled by --merge-output-format
        if media_kind is MediaKind.VIDEO and "+" not in format_id:
            args.extend(["--recode-video", "mp4"])

        return args

    def _verify_output(self, output_path: Path, duration: float) -> ExtractionOutcome:
        try:
            size = output_path.stat().st_size
        except FileNotFoundError:
            return self._fail(
                ErrorKind.EXTRACTION_FAILED,
                "Download failed: the file was not created.",
                duration=duration,
            )

        if size == 0:
            logger.error("empty_artifact_removed", filepath=str(output_path))
            output_path.unlink(missing_ok=True)
            return self._fail(
                ErrorKind.EMPTY_ARTIFACT,
                "The downloaded file is empty. Please try again.",
                duration=duration,
            )

        logger.info(
            "extraction_completed",
            filepath=str(output_path),
            size_bytes=size,
            duration=round(duration, 2),
        )
        MetricsCollector.record_retrieval("success", duration)
        return ExtractionSuccess(file_path=str(output_path), size_bytes=size)

    def _fail(
        self,
        kind: ErrorKind,
        message: str,
        raw_diagnostic: Optional[str] = None,
        duration: float = 0.0,
    ) -> ExtractionFailure:
        logger.warning("retrieval_failed", error_kind=kind.value, message=message)
        MetricsCollector.record_retrieval(kind.value, duration)
        return ExtractionFailure(kind=kind, message=message, raw_diagnostic=raw_diagnostic)
