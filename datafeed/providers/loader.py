from __future__ import annotations

from typing import Optional

from datafeed.config import Settings, get_settings
from datafeed.providers.base import MarketDataProvider
from datafeed.providers.polygon import PolygonProvider


def get_provider(settings: Optional[Settings] = None) -> MarketDataProvider:
    """
    Provider loader / factory.

    Reads PROVIDER from config and returns an instance of the selected provider.
    This is the single place that knows about concrete providers.
    """
    settings = settings or get_settings()
    provider_name = settings.provider.strip().upper()

    if provider_name == "POLYGON":
        return PolygonProvider(
            api_key=settings.polygon_api_key,
            base_url=settings.polygon_base_url,
            timeout_s=settings.polygon_timeout_seconds,
        )

    raise ValueError(f"Unknown PROVIDER='{settings.provider}'. Expected: POLYGON")
