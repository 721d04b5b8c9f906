"""Tests for yt-dlp diagnostic classification."""

import pytest

from media_gateway.core.classifier import DIAGNOSTIC_RULES, classify_diagnostic
from media_gateway.models.media import ErrorKind


class TestClassifyDiagnostic:
    """Tests for classify_diagnostic."""

    @pytest.mark.parametrize(
        "stderr,kind",
        [
            ("spawn yt-dlp ENOENT", ErrorKind.TOOL_MISSING),
            ("ERROR: ffmpeg not found. Please install", ErrorKind.TOOL_MISSING),
            ("ERROR: [youtube] abc: video unavailable", ErrorKind.NETWORK_FAULT),
            ("ERROR: unable to download video data: HTTP Error 403: Forbidden", ErrorKind.NETWORK_FAULT),
            ("ERROR: Requested format is not available", ErrorKind.FORMAT_REJECTED),
            ("ERROR: This video is DRM protected", ErrorKind.NETWORK_FAULT),
            ("WARNING: YouTube is forcing SABR streaming for this client", ErrorKind.FORMAT_REJECTED),
            ("ERROR: Postprocessing: Conversion failed!", ErrorKind.POSTPROCESS_FAILURE),
            ("Syntax error: unexpected token", ErrorKind.EXTRACTION_FAILED),
        ],
    )
    def test_signatures(self, stderr, kind):
        assert classify_diagnostic(stderr).kind is kind

    def test_drm_is_a_network_fault(self):
        result = classify_diagnostic("ERROR: [youtube] xyz: This video is DRM protected")
        assert result.kind is ErrorKind.NETWORK_FAULT
        assert "DRM" in result.message

    def test_first_matching_rule_wins(self):
        """A postprocessing failure that mentions ffmpeg is reported as a missing tool."""
        stderr = "ERROR: Postprocessing: ffmpeg exited with code 1"
        assert classify_diagnostic(stderr).kind is ErrorKind.TOOL_MISSING

    def test_unavailable_before_format_rejected(self):
        stderr = "video unavailable\nRequested format is not available"
        assert classify_diagnostic(stderr).kind is ErrorKind.NETWORK_FAULT

    def test_matching_is_case_sensitive(self):
        assert classify_diagnostic("FFMPEG crashed").kind is ErrorKind.EXTRACTION_FAILED
        assert classify_diagnostic("Video Unavailable").kind is ErrorKind.EXTRACTION_FAILED

    def test_unmatched_text_is_carried_in_message(self):
        result = classify_diagnostic("  ERROR: something odd happened\n")
        assert result.kind is ErrorKind.EXTRACTION_FAILED
        assert result.message == "Could not download content: ERROR: something odd happened"

    @pytest.mark.parametrize("stderr", ["", None, "   "])
    def test_empty_diagnostic(self, stderr):
        result = classify_diagnostic(stderr)
        assert result.kind is ErrorKind.EXTRACTION_FAILED
        assert result.message == "Could not download content"

    def test_rule_order(self):
        signatures = [signature for signature, _, _ in DIAGNOSTIC_RULES]
        assert signatures == [
            "ENOENT",
            "ffmpeg",
            "video unavailable",
            "HTTP Error 403",
            "Requested format is not available",
            "DRM protected",
            "SABR streaming",
            "Postprocessing",
            "Syntax error",
        ]

    def test_classification_is_pure(self):
        stderr = "ERROR: HTTP Error 403: Forbidden"
        assert classify_diagnostic(stderr) == classify_diagnostic(stderr)
