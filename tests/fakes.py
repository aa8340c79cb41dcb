from __future__ import annotations

import asyncio
import json
from typing import Dict, List, Optional

from datafeed.errors import SymbolNotFoundError
from datafeed.providers.base import MarketDataProvider


async def eventually(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self) -> None:
        self.sent: List[dict] = []
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def push(self, frame) -> None:
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        self._inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeConnector:
    """Hands out sockets (or raises errors) in order, one per connect()."""

    def __init__(self, *outcomes) -> None:
        self._outcomes = list(outcomes)
        self.urls: List[str] = []

    def __call__(self, url: str):
        self.urls.append(url)
        item = self._outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class FakeProvider(MarketDataProvider):
    def __init__(self) -> None:
        self.search_rows: List[dict] = []
        self.search_error: Optional[Exception] = None
        self.search_calls: List[tuple] = []

        self.details: Dict[str, dict] = {}
        self.details_calls: List[str] = []

        self.agg_rows: Dict[str, List[dict]] = {}
        self.agg_errors: Dict[str, Exception] = {}
        self.agg_calls: List[tuple] = []
        self.agg_gate: Optional[asyncio.Event] = None

        self.closed = False

    async def search_tickers(self, query, exchange=None, market=None, limit=30):
        self.search_calls.append((query, exchange, market, limit))
        if self.search_error is not None:
            raise self.search_error
        return list(self.search_rows)

    async def ticker_details(self, ticker):
        self.details_calls.append(ticker)
        if ticker not in self.details:
            raise SymbolNotFoundError(ticker)
        return self.details[ticker]

    async def aggregates(self, ticker, multiplier, timespan, from_ms, to_ms):
        self.agg_calls.append((ticker, multiplier, timespan, from_ms, to_ms))
        if self.agg_gate is not None:
            await self.agg_gate.wait()
        if ticker in self.agg_errors:
            raise self.agg_errors[ticker]
        return list(self.agg_rows.get(ticker, []))

    async def close(self):
        self.closed = True


AAPL_DETAILS = {
    "ticker": "AAPL",
    "name": "Apple Inc.",
    "market": "stocks",
    "primary_exchange": "XNAS",
    "type": "CS",
    "currency_name": "usd",
    "sic_description": "ELECTRONIC COMPUTERS",
}


def agg(t: int, o: float = 1.0, h: float = 2.0, l: float = 0.5, c: float = 1.5, v: float = 100.0) -> dict:
    return {"t": t, "o": o, "h": h, "l": l, "c": c, "v": v}
