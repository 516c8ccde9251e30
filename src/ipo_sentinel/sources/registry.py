"""Closed registry of provider adapters."""

from __future__ import annotations

import logging

import httpx

from ipo_sentinel.core.config import SourcesConfig
from ipo_sentinel.core.exceptions import ConfigError
from ipo_sentinel.core.models import SourceName
from ipo_sentinel.sources.base import BaseSourceAdapter, InvocationObserver
from ipo_sentinel.sources.chittorgarh import ChittorgarhAdapter
from ipo_sentinel.sources.groww import GrowwAdapter
from ipo_sentinel.sources.investorgain import InvestorGainAdapter
from ipo_sentinel.sources.nse import NseAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: dict[SourceName, type[BaseSourceAdapter]] = {
    SourceName.CHITTORGARH: ChittorgarhAdapter,
    SourceName.GROWW: GrowwAdapter,
    SourceName.INVESTORGAIN: InvestorGainAdapter,
    SourceName.NSE: NseAdapter,
}


def build_adapters(
    config: SourcesConfig,
    observer: InvocationObserver | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, BaseSourceAdapter]:
    """Instantiate one adapter per enabled source, keyed by source name.

    Raises:
        ConfigError: If no source is enabled.
    """
    if not config.enabled:
        raise ConfigError("No sources enabled", context={"enabled": []})

    adapters: dict[str, BaseSourceAdapter] = {}
    for name in config.enabled:
        source = SourceName(name)
        if source in adapters:
            continue
        adapters[source.value] = ADAPTER_CLASSES[source](config, observer=observer, client=client)
    logger.info("Built %d source adapters: %s", len(adapters), ", ".join(adapters))
    return adapters
