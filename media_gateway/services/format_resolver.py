"""Format discovery and quality negotiation."""

from typing import List, Optional, Sequence, Union

import structlog

from media_gateway.core.metrics import MetricsCollector
from media_gateway.models.media import (
    QUALITY_PREFERENCES,
    FormatDescriptor,
    MediaKind,
    QualityTier,
)
from media_gateway.providers.base import FormatLister
from media_gateway.providers.exceptions import ProviderError, StaleSourceError

logger = structlog.get_logger(__name__)


def select_format(
    descriptors: Sequence[FormatDescriptor],
    quality_tier: Optional[Union[str, QualityTier]],
    media_kind: MediaKind,
) -> Optional[str]:
    """
    Pick a format id using a strict ordered fallback chain.

    1. Each preferred quality label of the tier, in order, restricted to
       descriptors of the requested kind.
    2. For video, the first video descriptor regardless of quality.
    3. The first audio descriptor.
    4. The first descriptor of any kind.

    The low tier therefore returns whatever video comes first when no
    360p/240p rendition exists, even a much higher quality.

    Args:
        descriptors: Formats in source order
        quality_tier: Tier name; unrecognized values fall back to "high"
        media_kind: Wanted media kind

    Returns:
        Selected format id, or None for an empty list
    """
    tier = quality_tier if isinstance(quality_tier, QualityTier) else QualityTier.parse(quality_tier)

    for label in QUALITY_PREFERENCES[tier]:
        for descriptor in descriptors:
            if descriptor.quality == label and descriptor.kind is media_kind:
                return descriptor.format_id

    if media_kind is MediaKind.VIDEO:
        for descriptor in descriptors:
            if descriptor.kind is MediaKind.VIDEO:
                return descriptor.format_id

    for descriptor in descriptors:
        if descriptor.kind is MediaKind.AUDIO:
            return descriptor.format_id

    if descriptors:
        return descriptors[0].format_id

    return None


class FormatResolver:
    """Lists formats through an ordered chain of strategies and selects one.

    The next strategy is tried only when the current one reports the source
    as stale; any other failure ends the chain with no formats.
    """

    def __init__(self, strategies: Sequence[FormatLister]):
        if not strategies:
            raise ValueError("At least one format-listing strategy is required")
        self.strategies: List[FormatLister] = list(strategies)

    async def list_formats(self, url: str) -> List[FormatDescriptor]:
        """
        List formats, never raising.

        Returns:
            Descriptors from the first strategy that succeeds, or an empty
            list when no strategy could list formats
        """
        for strategy in self.strategies:
            try:
                formats = await strategy.list_formats(url)
            except StaleSourceError as e:
                MetricsCollector.record_format_listing(strategy.name, "stale")
                logger.warning(
                    "format_listing_stale_falling_back",
                    strategy=strategy.name,
                    url=url,
                    error=str(e)[:200],
                )
                continue
            except ProviderError as e:
                MetricsCollector.record_format_listing(strategy.name, "failed")
                logger.error(
                    "format_listing_failed",
                    strategy=strategy.name,
                    url=url,
                    error=str(e)[:200],
                )
                return []
            except Exception:
                MetricsCollector.record_format_listing(strategy.name, "failed")
                logger.exception("format_listing_crashed", strategy=strategy.name, url=url)
                return []

            MetricsCollector.record_format_listing(strategy.name, "success")
            return formats

        logger.error("format_listing_exhausted", url=url)
        return []

    async def resolve(
        self,
        url: str,
        quality_tier: Optional[Union[str, QualityTier]],
        media_kind: MediaKind,
    ) -> Optional[str]:
        """List formats and select one; None when nothing usable was found."""
        formats = await self.list_formats(url)
        if not formats:
            return None

        format_id = select_format(formats, quality_tier, media_kind)
        logger.info(
            "format_selected",
            url=url,
            quality_tier=str(quality_tier),
            media_kind=media_kind.value,
            format_id=format_id,
            candidates=len(formats),
        )
        return format_id
