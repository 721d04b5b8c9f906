"""Tests for external tool probes."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from media_gateway.core.checks import CheckResult, check_ffmpeg, check_ytdlp, ensure_tools
from media_gateway.providers.exceptions import ToolMissingError


def version_process(returncode=0, stdout=b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, b""))
    process.kill = MagicMock()
    process.wait = AsyncMock()
    return process


class TestCheckYtdlp:
    """Tests for check_ytdlp."""

    @pytest.mark.asyncio
    async def test_available(self):
        process = version_process(stdout=b"2025.01.15\n")
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await check_ytdlp()

        assert result == CheckResult(name="ytdlp", available=True, version="2025.01.15")

    @pytest.mark.asyncio
    async def test_not_found(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError)):
            result = await check_ytdlp()

        assert result.available is False
        assert result.error == "yt-dlp not found"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=version_process(returncode=2))):
            result = await check_ytdlp()

        assert result.available is False
        assert "non-zero" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_version_check(self):
        process = version_process()
        process.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)):
            result = await check_ytdlp(timeout=0.1)

        assert result.available is False
        assert result.error == "yt-dlp check timed out"
        process.kill.assert_called_once()


class TestCheckFfmpeg:
    """Tests for check_ffmpeg."""

    @pytest.mark.asyncio
    async def test_parses_version(self):
        stdout = b"ffmpeg version 6.1.1-3ubuntu5 Copyright (c) 2000-2023 the FFmpeg developers\n"
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=version_process(stdout=stdout))):
            result = await check_ffmpeg()

        assert result.available is True
        assert result.version == "6.1.1-3ubuntu5"

    @pytest.mark.asyncio
    async def test_unparseable_version(self):
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=version_process(stdout=b"??"))):
            result = await check_ffmpeg()

        assert result.version == "unknown"


class TestEnsureTools:
    """Tests for ensure_tools."""

    @pytest.mark.asyncio
    async def test_all_available(self):
        ok_ytdlp = CheckResult(name="ytdlp", available=True, version="2025.01.15")
        ok_ffmpeg = CheckResult(name="ffmpeg", available=True, version="6.1")
        with (
            patch("media_gateway.core.checks.check_ytdlp", AsyncMock(return_value=ok_ytdlp)),
            patch("media_gateway.core.checks.check_ffmpeg", AsyncMock(return_value=ok_ffmpeg)),
        ):
            await ensure_tools(timeout=1.0)

    @pytest.mark.asyncio
    async def test_missing_ytdlp_reported_first(self):
        missing = CheckResult(name="ytdlp", available=False, error="yt-dlp not found")
        ffmpeg = AsyncMock()
        with (
            patch("media_gateway.core.checks.check_ytdlp", AsyncMock(return_value=missing)),
            patch("media_gateway.core.checks.check_ffmpeg", ffmpeg),
        ):
            with pytest.raises(ToolMissingError) as exc_info:
                await ensure_tools()

        assert exc_info.value.tool == "ytdlp"
        assert "yt-dlp is not installed" in str(exc_info.value)
        ffmpeg.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_ffmpeg(self):
        ok_ytdlp = CheckResult(name="ytdlp", available=True, version="2025.01.15")
        missing = CheckResult(name="ffmpeg", available=False, error="ffmpeg not found")
        with (
            patch("media_gateway.core.checks.check_ytdlp", AsyncMock(return_value=ok_ytdlp)),
            patch("media_gateway.core.checks.check_ffmpeg", AsyncMock(return_value=missing)),
        ):
            with pytest.raises(ToolMissingError) as exc_info:
                await ensure_tools()

        assert exc_info.value.tool == "ffmpeg"
        assert "FFmpeg is not installed" in str(exc_info.value)
