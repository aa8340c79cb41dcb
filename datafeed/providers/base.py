from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class MarketDataProvider(ABC):
    """
    Provider contract (interface).

    Any provider must implement:
    - search_tickers(): ticker search via REST
    - ticker_details(): company / listing details for one ticker via REST
    - aggregates(): historical OHLCV aggregates over a time range via REST

    Failures raise datafeed.errors.ProviderError.
    """

    @abstractmethod
    async def search_tickers(
        self,
        query: str,
        exchange: Optional[str] = None,
        market: Optional[str] = None,
        limit: int = 30,
    ) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    async def ticker_details(self, ticker: str) -> Dict:
        raise NotImplementedError

    @abstractmethod
    async def aggregates(
        self,
        ticker: str,
        multiplier: int,
        timespan: str,
        from_ms: int,
        to_ms: int,
    ) -> List[Dict]:
        raise NotImplementedError

    async def close(self) -> None:
        return None
