"""Abstract base class for format-listing strategies."""

from abc import ABC, abstractmethod
from typing import List

from media_gateway.models.media import FormatDescriptor


class FormatLister(ABC):
    """One way of discovering the encodings a source offers."""

    #: Short strategy name used in logs and metrics
    name: str = "base"

    @abstractmethod
    async def list_formats(self, url: str) -> List[FormatDescriptor]:
        """
        List available formats for a content URL.

        Args:
            url: Content URL

        Returns:
            Format descriptors in the order the source reports them

        Raises:
            StaleSourceError: If the source reports the resource as gone/stale;
                the resolver falls back to the next strategy only in this case
            ProviderError: For any other failure
        """
        pass
