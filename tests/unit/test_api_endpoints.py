"""Tests for API endpoints."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from media_gateway.api import download, files, health, metadata, subtitles
from media_gateway.core.checks import CheckResult
from media_gateway.core.errors import APIError, global_exception_handler
from media_gateway.core.rate_limiter import FixedWindowRateLimiter
from media_gateway.middleware.rate_limit import FileRateLimitMiddleware
from media_gateway.models.media import (
    ErrorKind,
    ExtractionFailure,
    ExtractionSuccess,
    MediaKind,
    SubtitleFormat,
)
from media_gateway.providers.exceptions import SubtitlesNotFoundError, UpstreamAPIError
from media_gateway.providers.youtube import Snippet
from media_gateway.services.cache import ArtifactCache
from media_gateway.services.subtitles import SubtitleResult

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def downloads_cache(tmp_path: Path) -> ArtifactCache:
    cache = ArtifactCache(tmp_path / "downloads")
    cache.initialize()
    return cache


@pytest.fixture
def subtitles_cache(tmp_path: Path) -> ArtifactCache:
    cache = ArtifactCache(tmp_path / "subtitles")
    cache.initialize()
    return cache


@pytest.fixture
def mock_orchestrator() -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.retrieve = AsyncMock()
    return orchestrator


@pytest.fixture
def mock_fallback() -> MagicMock:
    client = MagicMock()
    client.get_media_links = AsyncMock()
    client.get_metadata = AsyncMock()
    return client


@pytest.fixture
def mock_youtube() -> MagicMock:
    client = MagicMock()
    client.enabled = True
    client.get_snippet = AsyncMock()
    return client


@pytest.fixture
def mock_subtitle_service() -> MagicMock:
    service = MagicMock()
    service.fetch = AsyncMock()
    return service


@pytest.fixture
def limiters() -> dict:
    return {
        "download": FixedWindowRateLimiter("download", points=50, duration=60),
        "subtitle": FixedWindowRateLimiter("subtitle", points=5, duration=60),
        "file": FixedWindowRateLimiter("file", points=5, duration=900),
    }


@pytest.fixture
def app(
    downloads_cache: ArtifactCache,
    subtitles_cache: ArtifactCache,
    mock_orchestrator: MagicMock,
    mock_fallback: MagicMock,
    mock_youtube: MagicMock,
    mock_subtitle_service: MagicMock,
    limiters: dict,
) -> FastAPI:
    """Create a test FastAPI application with mocked services."""
    app = FastAPI()
    app.add_middleware(FileRateLimitMiddleware, limiter=limiters["file"])

    for exc_type in (Exception, APIError, StarletteHTTPException, RequestValidationError):
        app.add_exception_handler(exc_type, global_exception_handler)

    app.dependency_overrides[download.get_orchestrator] = lambda: mock_orchestrator
    app.dependency_overrides[download.get_fallback_client] = lambda: mock_fallback
    app.dependency_overrides[download.get_download_limiter] = lambda: limiters["download"]
    app.dependency_overrides[subtitles.get_subtitle_service] = lambda: mock_subtitle_service
    app.dependency_overrides[subtitles.get_subtitle_limiter] = lambda: limiters["subtitle"]
    app.dependency_overrides[metadata.get_youtube_client] = lambda: mock_youtube
    app.dependency_overrides[metadata.get_fallback_client] = lambda: mock_fallback
    app.dependency_overrides[files.get_downloads_cache] = lambda: downloads_cache
    app.dependency_overrides[files.get_subtitles_cache] = lambda: subtitles_cache

    for module in (health, metadata, download, subtitles, files):
        app.include_router(module.router)

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


# ============================================================================
# Download Endpoint Tests
# ============================================================================


class TestDownloadEndpoint:
    """Tests for POST /api/download."""

    def test_youtube_download(self, client, mock_orchestrator, downloads_cache):
        path = downloads_cache.path_for("Never_Gonna_Give_You_Up_high.mp4")
        mock_orchestrator.retrieve.return_value = ExtractionSuccess(str(path), 2048)

        response = client.post(
            "/api/download",
            json={"url": YOUTUBE_URL, "platform": "YouTube", "type": "video", "quality": "high"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "download_url": "/downloads/Never_Gonna_Give_You_Up_high.mp4",
        }
        retrieval = mock_orchestrator.retrieve.call_args.args[0]
        assert retrieval.source_url == YOUTUBE_URL
        assert retrieval.media_kind is MediaKind.VIDEO
        assert retrieval.quality_tier == "high"

    def test_download_url_is_quoted(self, client, mock_orchestrator, downloads_cache):
        path = downloads_cache.path_for("Café_#1_low.mp3")
        mock_orchestrator.retrieve.return_value = ExtractionSuccess(str(path), 10)

        response = client.post(
            "/api/download",
            json={"url": YOUTUBE_URL, "platform": "youtube", "type": "audio", "quality": "low"},
        )

        assert response.json()["download_url"] == "/downloads/Caf%C3%A9_%231_low.mp3"

    @pytest.mark.parametrize(
        "kind,status",
        [
            (ErrorKind.INVALID_INPUT, 400),
            (ErrorKind.CONTENT_UNAVAILABLE, 403),
            (ErrorKind.TOOL_MISSING, 500),
            (ErrorKind.NETWORK_FAULT, 502),
            (ErrorKind.EXTRACTION_TIMEOUT, 504),
        ],
    )
    def test_failure_status(self, client, mock_orchestrator, kind, status):
        mock_orchestrator.retrieve.return_value = ExtractionFailure(kind, "It failed.", "stderr text")

        response = client.post(
            "/api/download", json={"url": YOUTUBE_URL, "platform": "youtube", "type": "video"}
        )

        assert response.status_code == status
        body = response.json()
        assert body["error_code"] == kind.value
        assert body["message"] == "It failed."
        assert body["details"] == "stderr text"

    def test_other_platform_relays_direct_link(self, client, mock_fallback, mock_orchestrator):
        mock_fallback.get_media_links.return_value = {
            "video": "https://cdn.example/v.mp4",
            "audio": "https://cdn.example/a.mp3",
        }

        response = client.post(
            "/api/download",
            json={"url": "https://tiktok.com/@u/video/1", "platform": "tiktok", "type": "audio"},
        )

        assert response.status_code == 200
        assert response.json()["download_url"] == "https://cdn.example/a.mp3"
        mock_fallback.get_media_links.assert_awaited_once_with("https://tiktok.com/@u/video/1", None)
        mock_orchestrator.retrieve.assert_not_called()

    def test_other_platform_without_requested_kind(self, client, mock_fallback):
        mock_fallback.get_media_links.return_value = {"video": "https://cdn.example/v.mp4"}

        response = client.post(
            "/api/download",
            json={"url": "https://tiktok.com/@u/video/1", "platform": "tiktok", "type": "audio"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No audio content was found to download."

    def test_other_platform_upstream_error(self, client, mock_fallback):
        mock_fallback.get_media_links.side_effect = UpstreamAPIError("unsupported link", 400)

        response = client.post(
            "/api/download",
            json={"url": "https://x.example/1", "platform": "facebook", "type": "video"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "unsupported link"

    @pytest.mark.parametrize(
        "body",
        [
            {"platform": "youtube", "type": "video"},
            {"url": YOUTUBE_URL, "type": "video"},
            {"url": YOUTUBE_URL, "platform": "youtube"},
            {"url": YOUTUBE_URL, "platform": "youtube", "type": "gif"},
            {"url": "   ", "platform": "youtube", "type": "video"},
        ],
    )
    def test_invalid_request(self, client, body, mock_orchestrator):
        response = client.post("/api/download", json=body)

        assert response.status_code == 400
        assert response.json()["error_code"] == "InvalidInput"
        mock_orchestrator.retrieve.assert_not_called()

    def test_global_rate_limit(self, client, mock_orchestrator, downloads_cache, limiters):
        limiters["download"] = FixedWindowRateLimiter("download", points=1, duration=60)
        client.app.dependency_overrides[download.get_download_limiter] = lambda: limiters["download"]
        mock_orchestrator.retrieve.return_value = ExtractionSuccess(
            str(downloads_cache.path_for("a.mp4")), 1
        )
        body = {"url": YOUTUBE_URL, "platform": "youtube", "type": "video"}

        assert client.post("/api/download", json=body).status_code == 200
        response = client.post("/api/download", json=body)

        assert response.status_code == 429
        assert response.json()["error_code"] == "RateLimitExceeded"
        assert int(response.headers["Retry-After"]) >= 1


# ============================================================================
# Subtitle Endpoint Tests
# ============================================================================


class TestSubtitleEndpoint:
    """Tests for /api/download-subtitle."""

    def test_download_subtitle(self, client, mock_subtitle_service, subtitles_cache):
        mock_subtitle_service.fetch.return_value = SubtitleResult(
            filename="subtitle_dQw4w9WgXcQ_de.srt",
            file_path=subtitles_cache.path_for("subtitle_dQw4w9WgXcQ_de.srt"),
            selected_language="de",
        )

        response = client.post(
            "/api/download-subtitle",
            json={"url": YOUTUBE_URL, "platform": "youtube", "format_preference": "SRT"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "download_url": "/subtitles/subtitle_dQw4w9WgXcQ_de.srt",
            "selected_language": "de",
        }
        mock_subtitle_service.fetch.assert_awaited_once_with(
            YOUTUBE_URL, "youtube", language="en", fmt=SubtitleFormat.SRT
        )

    def test_no_subtitles(self, client, mock_subtitle_service):
        mock_subtitle_service.fetch.side_effect = SubtitlesNotFoundError("The video has no subtitles")

        response = client.post("/api/download-subtitle", json={"url": YOUTUBE_URL, "platform": "youtube"})

        assert response.status_code == 404
        assert response.json()["error_code"] == "SubtitlesNotFound"

    def test_unsupported_format(self, client):
        response = client.post(
            "/api/download-subtitle",
            json={"url": YOUTUBE_URL, "platform": "youtube", "format_preference": "ass"},
        )

        assert response.status_code == 400

    def test_get_is_not_allowed(self, client):
        response = client.get("/api/download-subtitle")

        assert response.status_code == 405
        body = response.json()
        assert body["error_code"] == "MethodNotAllowed"
        assert "POST" in body["message"]

    def test_per_client_rate_limit(self, client, mock_subtitle_service, subtitles_cache):
        mock_subtitle_service.fetch.return_value = SubtitleResult(
            filename="s.srt", file_path=subtitles_cache.path_for("s.srt"), selected_language="en"
        )
        body = {"url": YOUTUBE_URL, "platform": "youtube"}

        statuses = [client.post("/api/download-subtitle", json=body).status_code for _ in range(6)]

        assert statuses == [200] * 5 + [429]
        assert mock_subtitle_service.fetch.await_count == 5


# ============================================================================
# Metadata Endpoint Tests
# ============================================================================


class TestMetadataEndpoint:
    """Tests for POST /api/metadata."""

    def test_youtube_snippet(self, client, mock_youtube):
        mock_youtube.get_snippet.return_value = Snippet(
            title="Never Gonna Give You Up", thumbnail="https://i.ytimg.com/hq.jpg"
        )

        response = client.post("/api/metadata", json={"url": YOUTUBE_URL, "platform": "youtube"})

        assert response.status_code == 200
        assert response.json() == {
            "title": "Never Gonna Give You Up",
            "thumbnail": "https://i.ytimg.com/hq.jpg",
        }
        mock_youtube.get_snippet.assert_awaited_once_with("dQw4w9WgXcQ")

    def test_youtube_without_api_key(self, client, mock_youtube):
        mock_youtube.enabled = False

        response = client.post("/api/metadata", json={"url": YOUTUBE_URL, "platform": "youtube"})

        assert response.json() == {
            "title": "Video YouTube - dQw4w9WgXcQ",
            "thumbnail": "https://img.youtube.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
        }
        mock_youtube.get_snippet.assert_not_called()

    def test_youtube_lookup_failure(self, client, mock_youtube):
        mock_youtube.get_snippet.side_effect = UpstreamAPIError("quota", 502)

        response = client.post("/api/metadata", json={"url": YOUTUBE_URL, "platform": "youtube"})

        assert response.status_code == 200
        assert response.json()["title"] == "Video YouTube - dQw4w9WgXcQ"

    def test_youtube_url_without_id(self, client):
        response = client.post(
            "/api/metadata", json={"url": "https://www.youtube.com/@channel", "platform": "youtube"}
        )

        assert response.json() == {"title": "Sample YouTube video", "thumbnail": ""}

    def test_other_platform(self, client, mock_fallback):
        mock_fallback.get_metadata.return_value = {"title": "Clip", "thumbnail": "https://t/1.jpg"}

        response = client.post(
            "/api/metadata", json={"url": "https://instagram.com/p/1", "platform": "instagram"}
        )

        assert response.json() == {"title": "Clip", "thumbnail": "https://t/1.jpg"}

    def test_other_platform_failure_uses_placeholder(self, client, mock_fallback):
        mock_fallback.get_metadata.side_effect = UpstreamAPIError("Error from the media API.")

        response = client.post(
            "/api/metadata", json={"url": "https://tiktok.com/@u/video/1", "platform": "TikTok"}
        )

        assert response.status_code == 200
        assert response.json() == {"title": "Sample TikTok/Douyin video", "thumbnail": ""}

    def test_unknown_platform_placeholder(self, client, mock_fallback):
        mock_fallback.get_metadata.side_effect = UpstreamAPIError("down")

        response = client.post("/api/metadata", json={"url": "https://v.example/1", "platform": "vimeo"})

        assert response.json()["title"] == "Sample video title"


# ============================================================================
# File Endpoint Tests
# ============================================================================


class TestFileEndpoints:
    """Tests for GET /downloads/{filename} and GET /subtitles/{filename}."""

    def test_serve_download(self, client, downloads_cache):
        downloads_cache.path_for("clip_high.mp4").write_bytes(b"\x00\x01\x02")

        response = client.get("/downloads/clip_high.mp4")

        assert response.status_code == 200
        assert response.content == b"\x00\x01\x02"
        assert "attachment" in response.headers["content-disposition"]
        assert "clip_high.mp4" in response.headers["content-disposition"]

    def test_missing_download(self, client):
        response = client.get("/downloads/nothing.mp4")

        assert response.status_code == 404
        assert response.json()["error_code"] == "FileNotFound"

    def test_empty_download_is_removed(self, client, downloads_cache):
        path = downloads_cache.path_for("empty.mp4")
        path.touch()

        response = client.get("/downloads/empty.mp4")

        assert response.status_code == 500
        assert response.json()["error_code"] == "EmptyArtifact"
        assert not path.exists()

    def test_traversal_is_rejected(self, client, tmp_path):
        (tmp_path / "secret.txt").write_text("secret")

        response = client.get("/downloads/..%2Fsecret.txt")

        assert response.status_code == 404

    def test_serve_subtitle(self, client, subtitles_cache):
        subtitles_cache.path_for("subtitle_abc_en.srt").write_text("1\n00:00:01,000 --> 00:00:02,000\nHi\n")

        response = client.get("/subtitles/subtitle_abc_en.srt")

        assert response.status_code == 200
        assert "Hi" in response.text

    def test_file_rate_limit(self, client, downloads_cache):
        downloads_cache.path_for("clip.mp4").write_bytes(b"data")

        statuses = [client.get("/downloads/clip.mp4").status_code for _ in range(6)]

        assert statuses == [200] * 5 + [429]

    def test_file_rate_limit_response(self, client, downloads_cache):
        for _ in range(5):
            client.get("/downloads/whatever.mp4")

        response = client.get("/downloads/whatever.mp4")

        assert response.status_code == 429
        assert response.json()["error_code"] == "RateLimitExceeded"
        assert 1 <= int(response.headers["Retry-After"]) <= 901

    def test_subtitle_files_are_not_file_limited(self, client, subtitles_cache):
        subtitles_cache.path_for("s.vtt").write_text("WEBVTT\n")

        statuses = {client.get("/subtitles/s.vtt").status_code for _ in range(7)}

        assert statuses == {200}


# ============================================================================
# Health Endpoint Tests
# ============================================================================


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_all_healthy(self, client):
        with (
            patch(
                "media_gateway.api.health.check_ytdlp",
                AsyncMock(return_value=CheckResult("ytdlp", True, "2025.01.15")),
            ),
            patch(
                "media_gateway.api.health.check_ffmpeg",
                AsyncMock(return_value=CheckResult("ffmpeg", True, "6.1")),
            ),
        ):
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["ytdlp"]["version"] == "2025.01.15"
        assert body["components"]["downloads"]["details"] == {"files": 0, "max_files": 10}

    def test_missing_tool_is_unhealthy(self, client):
        with (
            patch(
                "media_gateway.api.health.check_ytdlp",
                AsyncMock(return_value=CheckResult("ytdlp", True, "2025.01.15")),
            ),
            patch(
                "media_gateway.api.health.check_ffmpeg",
                AsyncMock(return_value=CheckResult("ffmpeg", False, error="ffmpeg not found")),
            ),
        ):
            response = client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["components"]["ffmpeg"]["details"] == {"error": "ffmpeg not found"}
