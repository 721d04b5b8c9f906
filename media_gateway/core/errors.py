"""Centralized error handling for the API.

This module provides standardized error codes, outcome/exception-to-response
mapping, and a global exception handler for FastAPI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Type

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_405_METHOD_NOT_ALLOWED,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_504_GATEWAY_TIMEOUT,
)

from media_gateway.core.logging import get_request_id
from media_gateway.core.rate_limiter import RateLimitExceededError
from media_gateway.models.media import ErrorKind, ExtractionFailure
from media_gateway.providers.exceptions import (
    InvalidURLError,
    ProviderError,
    SubtitlesNotFoundError,
    ToolMissingError,
    UpstreamAPIError,
)

logger = structlog.get_logger(__name__)


class ErrorCode:
    """Machine-readable error codes for API responses.

    Retrieval failures reuse the ErrorKind names.
    """

    INVALID_INPUT = ErrorKind.INVALID_INPUT.value
    CONTENT_UNAVAILABLE = ErrorKind.CONTENT_UNAVAILABLE.value
    NO_FORMAT_AVAILABLE = ErrorKind.NO_FORMAT_AVAILABLE.value
    TOOL_MISSING = ErrorKind.TOOL_MISSING.value
    EXTRACTION_TIMEOUT = ErrorKind.EXTRACTION_TIMEOUT.value
    NETWORK_FAULT = ErrorKind.NETWORK_FAULT.value
    FORMAT_REJECTED = ErrorKind.FORMAT_REJECTED.value
    POSTPROCESS_FAILURE = ErrorKind.POSTPROCESS_FAILURE.value
    EMPTY_ARTIFACT = ErrorKind.EMPTY_ARTIFACT.value
    EXTRACTION_FAILED = ErrorKind.EXTRACTION_FAILED.value

    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    SUBTITLES_NOT_FOUND = "SubtitlesNotFound"
    FILE_NOT_FOUND = "FileNotFound"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    UPSTREAM_ERROR = "UpstreamError"
    INTERNAL_ERROR = "InternalError"


ERROR_CODE_TO_STATUS: Dict[str, int] = {
    ErrorCode.INVALID_INPUT: HTTP_400_BAD_REQUEST,
    ErrorCode.NO_FORMAT_AVAILABLE: HTTP_400_BAD_REQUEST,
    ErrorCode.FORMAT_REJECTED: HTTP_400_BAD_REQUEST,
    ErrorCode.CONTENT_UNAVAILABLE: HTTP_403_FORBIDDEN,
    ErrorCode.SUBTITLES_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.FILE_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.METHOD_NOT_ALLOWED: HTTP_405_METHOD_NOT_ALLOWED,
    ErrorCode.RATE_LIMIT_EXCEEDED: HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TOOL_MISSING: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.POSTPROCESS_FAILURE: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EMPTY_ARTIFACT: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EXTRACTION_FAILED: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.UPSTREAM_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.INTERNAL_ERROR: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.NETWORK_FAULT: HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTRACTION_TIMEOUT: HTTP_504_GATEWAY_TIMEOUT,
}


ERROR_SUGGESTIONS: Dict[str, str] = {
    ErrorCode.INVALID_INPUT: "Check the URL; YouTube links look like youtube.com/watch?v=<id> or youtu.be/<id>",
    ErrorCode.CONTENT_UNAVAILABLE: "The video may be private, removed, or still processing",
    ErrorCode.NO_FORMAT_AVAILABLE: "Try a different quality or media type",
    ErrorCode.TOOL_MISSING: "A required tool (yt-dlp or ffmpeg) is missing. Contact the administrator",
    ErrorCode.EXTRACTION_TIMEOUT: "Retry later or request a lower quality",
    ErrorCode.NETWORK_FAULT: "The source refused access. Try another video",
    ErrorCode.FORMAT_REJECTED: "Retry, or choose a different quality",
    ErrorCode.POSTPROCESS_FAILURE: "Try the audio type or a different quality",
    ErrorCode.EMPTY_ARTIFACT: "Retry the request",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Wait for the Retry-After period before making more requests",
    ErrorCode.SUBTITLES_NOT_FOUND: "Try another language or another video",
}


# Order matters: subclasses must come before their base classes
EXCEPTION_TO_ERROR_CODE: Dict[Type[Exception], str] = {
    InvalidURLError: ErrorCode.INVALID_INPUT,
    ToolMissingError: ErrorCode.TOOL_MISSING,
    SubtitlesNotFoundError: ErrorCode.SUBTITLES_NOT_FOUND,
    UpstreamAPIError: ErrorCode.UPSTREAM_ERROR,
    ProviderError: ErrorCode.INTERNAL_ERROR,
}


class APIError(Exception):
    """Structured API error converted to a consistent response body."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[str] = None,
        suggestion: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """Initialize an API error.

        Args:
            error_code: Machine-readable error code from ErrorCode.
            message: Human-readable error message.
            details: Optional additional details about the error.
            suggestion: Optional suggestion; defaults to the code's suggestion.
            status_code: Overrides the code's default HTTP status.
            headers: Extra response headers.
        """
        self.error_code = error_code
        self.message = message
        self.details = details
        self.suggestion = suggestion or ERROR_SUGGESTIONS.get(error_code)
        self.status_code = status_code or ERROR_CODE_TO_STATUS.get(
            error_code, HTTP_500_INTERNAL_SERVER_ERROR
        )
        self.headers = headers
        super().__init__(message)


def api_error_from_failure(failure: ExtractionFailure) -> APIError:
    """Map a retrieval failure outcome to an APIError."""
    details = failure.raw_diagnostic[-1000:] if failure.raw_diagnostic else None
    return APIError(failure.kind.value, failure.message, details=details)


def map_exception_to_api_error(exc: Exception) -> APIError:
    """Map provider, service and limiter exceptions to APIError."""
    if isinstance(exc, RateLimitExceededError):
        return APIError(
            ErrorCode.RATE_LIMIT_EXCEEDED,
            "Too many requests. Please try again later.",
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
        )
    if isinstance(exc, UpstreamAPIError):
        return APIError(ErrorCode.UPSTREAM_ERROR, str(exc), status_code=exc.status_code)

    for exc_type, error_code in EXCEPTION_TO_ERROR_CODE.items():
        if isinstance(exc, exc_type):
            return APIError(error_code, str(exc))
    return APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


def build_error_response(
    error_code: str,
    message: str,
    details: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> Dict[str, Any]:
    response: Dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    request_id = get_request_id()
    if details:
        response["details"] = details
    if request_id:
        response["request_id"] = request_id
    if suggestion:
        response["suggestion"] = suggestion

    return response


def _status_to_error_code(status_code: int) -> str:
    if status_code == HTTP_400_BAD_REQUEST:
        return ErrorCode.INVALID_INPUT
    elif status_code == HTTP_404_NOT_FOUND:
        return ErrorCode.FILE_NOT_FOUND
    elif status_code == HTTP_405_METHOD_NOT_ALLOWED:
        return ErrorCode.METHOD_NOT_ALLOWED
    elif status_code == HTTP_429_TOO_MANY_REQUESTS:
        return ErrorCode.RATE_LIMIT_EXCEEDED
    else:
        return ErrorCode.INTERNAL_ERROR


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Convert any exception to a standardized error response."""
    if isinstance(exc, APIError):
        api_error = exc
        logger.warning(
            "api_error",
            error_code=exc.error_code,
            message=exc.message,
            path=request.url.path,
        )

    elif isinstance(exc, HTTPException):
        error_code = _status_to_error_code(exc.status_code)
        api_error = APIError(
            error_code,
            str(exc.detail) if exc.detail else "An error occurred",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            error_code=error_code,
            path=request.url.path,
        )

    elif isinstance(exc, RequestValidationError):
        fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
        api_error = APIError(
            ErrorCode.INVALID_INPUT,
            "Missing or invalid request fields",
            details=", ".join(f for f in fields if f) or None,
            suggestion="Send a JSON body with the required fields",
        )
        logger.warning("request_validation_failed", fields=fields, path=request.url.path)

    elif isinstance(exc, (ProviderError, RateLimitExceededError)):
        api_error = map_exception_to_api_error(exc)
        log = logger.error if isinstance(exc, ToolMissingError) else logger.warning
        log(
            "provider_error",
            error_code=api_error.error_code,
            error_type=type(exc).__name__,
            message=str(exc),
            path=request.url.path,
        )

    else:
        api_error = APIError(ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")
        logger.error(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

    response = build_error_response(
        error_code=api_error.error_code,
        message=api_error.message,
        details=api_error.details,
        suggestion=api_error.suggestion,
    )
    return JSONResponse(
        status_code=api_error.status_code, content=response, headers=api_error.headers
    )
