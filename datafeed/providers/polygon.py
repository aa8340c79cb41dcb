from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from datafeed.errors import ProviderError, SymbolNotFoundError
from datafeed.providers.base import MarketDataProvider

log = logging.getLogger("polygon_provider")


class PolygonProvider(MarketDataProvider):
    """
    Polygon REST provider.

    - ticker search:   /v3/reference/tickers?search=...
    - ticker details:  /v3/reference/tickers/{ticker}
    - aggregates:      /v2/aggs/ticker/{ticker}/range/{multiplier}/{timespan}/{from}/{to}

    The API key goes out as the `apiKey` query parameter on every call.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.polygon.io",
        timeout_s: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise RuntimeError("Missing Polygon API key. Set POLYGON_API_KEY in your .env.")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # -------------------------
    # Public interface used by the adapter
    # -------------------------
    async def search_tickers(
        self,
        query: str,
        exchange: Optional[str] = None,
        market: Optional[str] = None,
        limit: int = 30,
    ) -> list[dict]:
        params: dict[str, Any] = {"search": query, "active": "true", "limit": str(limit)}
        if exchange:
            params["exchange"] = exchange
        if market:
            params["market"] = market

        data = await self._get_json("/v3/reference/tickers", params)
        results = data.get("results") or []
        if not isinstance(results, list):
            raise ProviderError(f"Unexpected ticker search payload type={type(results).__name__}")
        return [r for r in results if isinstance(r, dict)]

    async def ticker_details(self, ticker: str) -> dict:
        try:
            data = await self._get_json(f"/v3/reference/tickers/{ticker}", {})
        except ProviderError as e:
            if e.status_code == 404:
                raise SymbolNotFoundError(ticker) from e
            raise

        results = data.get("results")
        if not results:
            raise SymbolNotFoundError(ticker)
        if not isinstance(results, dict):
            raise ProviderError(f"Unexpected ticker details payload type={type(results).__name__}")
        return results

    async def aggregates(
        self,
        ticker: str,
        multiplier: int,
        timespan: str,
        from_ms: int,
        to_ms: int,
    ) -> list[dict]:
        """
        Returns raw aggregate rows sorted ascending:
          {"t": epoch_ms, "o": ..., "h": ..., "l": ..., "c": ..., "v": ...}
        """
        path = f"/v2/aggs/ticker/{ticker}/range/{multiplier}/{timespan}/{int(from_ms)}/{int(to_ms)}"
        params = {"adjusted": "true", "sort": "asc", "limit": "50000"}

        data = await self._get_json(path, params)
        if data.get("status") == "ERROR":
            raise ProviderError(f"Aggregates error ticker={ticker}: {data.get('error')}")

        results = data.get("results") or []
        if not isinstance(results, list):
            raise ProviderError(
                f"Unexpected aggregates payload ticker={ticker} type={type(results).__name__}"
            )

        out: list[dict] = []
        for row in results:
            if not isinstance(row, dict):
                continue
            # Skip partial rows instead of failing the whole range
            if any(row.get(k) is None for k in ("t", "o", "h", "l", "c", "v")):
                continue
            out.append(row)

        log.debug(
            "Fetched aggregates ticker=%s range=%s/%s count=%d",
            ticker,
            multiplier,
            timespan,
            len(out),
        )
        return out

    # -------------------------
    # Transport
    # -------------------------
    async def _get_json(self, path: str, params: dict[str, Any]) -> dict:
        params = {**params, "apiKey": self.api_key}
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Polygon {path} returned {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Polygon {path} request failed: {e!r}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Polygon {path} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected payload type from {path}: {type(data).__name__}")
        return data
