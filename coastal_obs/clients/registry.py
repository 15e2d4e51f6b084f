"""Source adapter registry."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from ..core.config import PipelineConfig, ProviderSettings
from ..core.rate_limiter import RateLimiter
from ..core.stations import Source
from .base import SourceAdapter
from .ndbc import NdbcBuoyAdapter
from .noaa import NoaaCoopsAdapter
from .smn import SmnStationAdapter


logger = logging.getLogger(__name__)


def create_adapter(
    source: Source,
    settings: ProviderSettings,
    rate_limiter: RateLimiter,
    *,
    session: Optional[requests.Session] = None,
) -> SourceAdapter:
    """
    Factory function to create the adapter for a source.

    Args:
        source: Declared station source
        settings: Provider settings for that source
        rate_limiter: Shared per-source limiter
        session: Optional HTTP session shared by all adapters

    Returns:
        Configured adapter instance
    """
    if source is Source.NOAA:
        return NoaaCoopsAdapter(settings, rate_limiter, session=session)

    elif source is Source.NDBC:
        return NdbcBuoyAdapter(settings, rate_limiter, session=session)

    elif source is Source.SMN:
        return SmnStationAdapter(settings, rate_limiter, session=session)

    else:
        raise ValueError(f"Unknown source: {source}")


def build_adapters(
    config: PipelineConfig,
    rate_limiter: Optional[RateLimiter] = None,
    *,
    session: Optional[requests.Session] = None,
) -> Dict[Source, SourceAdapter]:
    """Create one adapter per configured source, all sharing one rate limiter."""
    limiter = rate_limiter or RateLimiter(config.min_intervals())
    shared_session = session if session is not None else requests.Session()
    adapters: Dict[Source, SourceAdapter] = {}
    for source, settings in config.providers.items():
        adapters[source] = create_adapter(source, settings, limiter, session=shared_session)
        logger.debug("%s adapter ready (min interval %.1fs)", source.value, settings.min_interval_seconds)
    return adapters
