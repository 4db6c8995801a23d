"""Provider adapters - one module per external data provider.

Usage:
    async with httpx.AsyncClient() as client:
        adapters = build_adapters(settings, client)
        for adapter in adapters:
            result = await adapter.fetch("AAPL")
"""

from __future__ import annotations

import httpx

from marketetl.core.config import Settings
from marketetl.core.exceptions import ConfigurationError

from .base import BaseAdapter
from .finnhub import FinnhubFundamentalsAdapter, FinnhubQuoteAdapter
from .polygon import PolygonAggregatesAdapter


def build_adapters(settings: Settings, client: httpx.AsyncClient) -> list[BaseAdapter]:
    """The three adapters in call order: quote, aggregates, fundamentals.

    Raises:
        ConfigurationError: if a provider API key is missing
    """
    missing = [
        name
        for name, value in (
            ("FINNHUB_API_KEY", settings.finnhub_api_key),
            ("POLYGON_API_KEY", settings.polygon_api_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            message=f"Missing provider credentials: {', '.join(missing)}",
            details={"missing": missing},
        )

    timeout = float(settings.external_api_timeout)
    return [
        FinnhubQuoteAdapter(client, settings.finnhub_api_key, settings.finnhub_base_url, timeout),
        PolygonAggregatesAdapter(client, settings.polygon_api_key, settings.polygon_base_url, timeout),
        FinnhubFundamentalsAdapter(client, settings.finnhub_api_key, settings.finnhub_base_url, timeout),
    ]


__all__ = [
    "BaseAdapter",
    "FinnhubFundamentalsAdapter",
    "FinnhubQuoteAdapter",
    "PolygonAggregatesAdapter",
    "build_adapters",
]
