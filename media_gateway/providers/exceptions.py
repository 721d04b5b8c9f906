"""Provider-specific exceptions."""


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class InvalidURLError(ProviderError):
    """Raised when URL is invalid or unsupported."""

    pass


class StaleSourceError(ProviderError):
    """Raised when the source reports a resource as gone or stale (HTTP 410)."""

    pass


class FormatListingError(ProviderError):
    """Raised when a format-listing strategy fails for any other reason."""

    pass


class ToolMissingError(ProviderError):
    """Raised when a required external tool is not invocable."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(message)


class SubtitlesNotFoundError(ProviderError):
    """Raised when no caption track can be retrieved."""

    pass


class UpstreamAPIError(ProviderError):
    """Raised when a third-party HTTP API fails or returns an error payload."""

    def __init__(self, message: str, status_code: int = 500):
        self.status_code = status_code
        super().__init__(message)
