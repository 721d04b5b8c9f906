"""Client for the third-party all-in-one media API.

Used for every platform other than YouTube; the gateway forwards the
request and relays the direct links or subtitle text it returns.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from media_gateway.providers.exceptions import SubtitlesNotFoundError, UpstreamAPIError

logger = structlog.get_logger(__name__)


class FallbackMediaClient:
    """Thin wrapper around the RapidAPI all-media-downloader endpoint."""

    def __init__(
        self,
        url: str,
        host: str,
        api_key: Optional[str],
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.url = url
        self.host = host
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "x-rapidapi-key": self.api_key or "",
            "x-rapidapi-host": self.host,
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("fallback_api_timeout", url=payload.get("url"))
            raise UpstreamAPIError("The request to the media API timed out.", 504) from e
        except httpx.HTTPStatusError as e:
            logger.warning(
                "fallback_api_error",
                url=payload.get("url"),
                status_code=e.response.status_code,
            )
            raise UpstreamAPIError("Error from the media API.", e.response.status_code) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("fallback_api_error", url=payload.get("url"), error=str(e))
            raise UpstreamAPIError("Error from the media API.") from e

        return data if isinstance(data, dict) else {}

    async def get_metadata(self, url: str) -> Dict[str, Any]:
        """
        Returns:
            The ``metadata`` object of the response

        Raises:
            UpstreamAPIError: If the call fails or carries no metadata
        """
        data = await self._post({"url": url})
        metadata = data.get("metadata")
        if not metadata:
            raise UpstreamAPIError("Invalid metadata from the media API.")
        return metadata

    async def get_media_links(self, url: str, quality: Optional[str]) -> Dict[str, Any]:
        """
        Returns:
            Response body with ``video``/``audio`` links

        Raises:
            UpstreamAPIError: If the call fails or returns an error payload (400)
        """
        data = await self._post({"url": url, "quality": quality})
        if data.get("error"):
            raise UpstreamAPIError(str(data["error"]), status_code=400)
        return data

    async def get_subtitle(self, url: str, language: str, fmt: str) -> str:
        """
        Raises:
            SubtitlesNotFoundError: If the API returns no subtitle text
            UpstreamAPIError: If the call fails
        """
        data = await self._post({"url": url, "language": language, "format": fmt})
        if data.get("error") or not data.get("subtitle"):
            raise SubtitlesNotFoundError(
                str(data.get("error") or "The media API does not support subtitles for this platform")
            )
        return str(data["subtitle"])

    async def aclose(self) -> None:
        await self._client.aclose()
