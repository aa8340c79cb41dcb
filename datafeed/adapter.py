from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set, Tuple

from datafeed.config import Settings
from datafeed.debounce import Debouncer
from datafeed.errors import ProviderError, SymbolNotFoundError
from datafeed.jobs.poller import poll_loop
from datafeed.live.client import LiveFeedClient
from datafeed.models.events import EventType, ProviderEvent, channel_name
from datafeed.models.market import Bar, HistoryMetadata, Subscription, SymbolInfo, SymbolSearchResult
from datafeed.providers.base import MarketDataProvider
from datafeed.resolution import SUPPORTED_RESOLUTIONS, is_live_resolution, resolution_to_range

log = logging.getLogger("datafeed_adapter")

# Widget symbol type -> provider `market` filter
_MARKETS = {"stock": "stocks", "crypto": "crypto", "forex": "fx", "index": "indices"}
_SYMBOL_TYPES = {v: k for k, v in _MARKETS.items()}

EXCHANGES = [
    {"value": "", "name": "All Exchanges", "desc": ""},
    {"value": "XNYS", "name": "NYSE", "desc": "New York Stock Exchange"},
    {"value": "XNAS", "name": "NASDAQ", "desc": "Nasdaq"},
    {"value": "XASE", "name": "AMEX", "desc": "NYSE American"},
    {"value": "ARCX", "name": "ARCA", "desc": "NYSE Arca"},
]

SYMBOL_TYPES = [
    {"name": "All types", "value": ""},
    {"name": "Stock", "value": "stock"},
    {"name": "Crypto", "value": "crypto"},
    {"name": "Forex", "value": "forex"},
    {"name": "Index", "value": "index"},
]


def strip_exchange(symbol_name: str) -> str:
    """Ticker without its exchange prefix, e.g. "XNAS:aapl" -> "AAPL"."""
    return (symbol_name or "").split(":")[-1].strip().upper()


class DatafeedAdapter:
    """
    Charting-widget datafeed backed by Polygon.

    Liveness is fixed at construction:
    - polling: every poll interval, each subscription is refreshed with the
      bars of the trailing poll window (REST)
    - push: one LiveFeedClient; per-minute aggregate events are delivered to
      the subscriptions of the matching ticker
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        api_key: str,
        use_websockets: bool = False,
        *,
        ws_url: str = "wss://socket.polygon.io/stocks",
        poll_interval_s: float = 15.0,
        poll_window_s: float = 120.0,
        reconnect_delay_s: float = 2.0,
        search_debounce_s: float = 0.25,
        live_client: Optional[LiveFeedClient] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self.use_websockets = use_websockets
        self.poll_interval_s = poll_interval_s
        self.poll_window_s = poll_window_s
        self._clock = clock

        self._subscriptions: List[Subscription] = []
        self._inflight: Set[asyncio.Task] = set()
        self._poll_task: Optional[asyncio.Task] = None

        # Interactive search: trailing-edge debounce over find_symbols
        self.search_symbols = Debouncer(self.find_symbols, search_debounce_s)

        self.live: Optional[LiveFeedClient] = None
        if use_websockets:
            self.live = live_client or LiveFeedClient(api_key, url=ws_url, reconnect_delay=reconnect_delay_s)
            self.live.on(EventType.AGGREGATE_MINUTE.value, self._on_aggregate)

    @classmethod
    def from_settings(cls, settings: Settings, provider: MarketDataProvider) -> "DatafeedAdapter":
        return cls(
            provider,
            settings.polygon_api_key,
            settings.use_websockets,
            ws_url=settings.polygon_ws_url,
            poll_interval_s=settings.poll_interval_seconds,
            poll_window_s=settings.poll_window_seconds,
            reconnect_delay_s=settings.ws_reconnect_seconds,
            search_debounce_s=settings.search_debounce_seconds,
        )

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    # -------------------------
    # Lifecycle
    # -------------------------
    async def on_ready(self) -> dict:
        """Start the liveness strategy and return the widget configuration."""
        if self.live is not None:
            self.live.start()
        elif self._poll_task is None:
            self._poll_task = asyncio.create_task(poll_loop(self, self.poll_interval_s), name="bar_poller")

        log.info("Polygon adapter ready mode=%s", "push" if self.live else "poll")
        return self.configuration()

    def configuration(self) -> dict:
        return {
            "supported_resolutions": list(SUPPORTED_RESOLUTIONS),
            "exchanges": EXCHANGES,
            "symbols_types": SYMBOL_TYPES,
            "supports_search": True,
            "supports_group_request": False,
            "supports_marks": False,
            "supports_timescale_marks": False,
            "supports_time": True,
        }

    async def close(self) -> None:
        self.search_symbols.cancel()

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self.live is not None:
            await self.live.stop()

        for task in list(self._inflight):
            task.cancel()

        await self.provider.close()

    # -------------------------
    # Search / resolve
    # -------------------------
    async def find_symbols(
        self,
        query: str,
        exchange: str = "",
        symbol_type: str = "",
        limit: int = 30,
    ) -> List[SymbolSearchResult]:
        """
        Undebounced ticker search. Never raises: any failure is an empty result
        so interactive typing is not interrupted.
        """
        query = (query or "").strip()
        if not query:
            return []

        try:
            rows = await self.provider.search_tickers(
                query,
                exchange=exchange or None,
                market=_MARKETS.get(symbol_type or ""),
                limit=limit,
            )
            return [self._search_result(r) for r in rows]
        except Exception as e:
            log.warning("Symbol search failed query=%s error=%r", query, e)
            return []

    @staticmethod
    def _search_result(row: dict) -> SymbolSearchResult:
        ticker = row["ticker"]
        exchange = row.get("primary_exchange") or ""
        return SymbolSearchResult(
            symbol=ticker,
            full_name=f"{exchange}:{ticker}" if exchange else ticker,
            description=row.get("name") or "",
            exchange=exchange,
            ticker=ticker,
            type=_SYMBOL_TYPES.get(row.get("market") or "", "stock"),
        )

    async def resolve_symbol(self, symbol_name: str) -> SymbolInfo:
        ticker = strip_exchange(symbol_name)
        if not ticker:
            raise SymbolNotFoundError(symbol_name)

        d = await self.provider.ticker_details(ticker)
        try:
            exchange = d.get("primary_exchange") or ""
            currency = (d.get("currency_name") or "").upper()
            return SymbolInfo(
                name=d["ticker"],
                ticker=d["ticker"],
                description=d.get("name") or "",
                type=_SYMBOL_TYPES.get(d.get("market") or "", "stock"),
                exchange=exchange,
                listed_exchange=exchange,
                sector=d.get("sic_description"),
                currency_code=currency or None,
                supported_resolutions=list(SUPPORTED_RESOLUTIONS),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected ticker details payload for '{ticker}'") from e

    # -------------------------
    # History
    # -------------------------
    async def get_bars(
        self,
        symbol_info: SymbolInfo,
        resolution: str,
        from_ts: float,
        to_ts: float,
        first_data_request: bool = False,
    ) -> Tuple[List[Bar], HistoryMetadata]:
        """
        Fetch bars for [from_ts, to_ts] (epoch seconds).

        Raises ProviderError / UnsupportedResolutionError; callers own the
        error channel.
        """
        multiplier, timespan = resolution_to_range(resolution)
        rows = await self.provider.aggregates(
            symbol_info.ticker,
            multiplier,
            timespan,
            int(from_ts * 1000),
            int(to_ts * 1000),
        )

        try:
            bars = [Bar.from_aggregate(r) for r in rows]
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Unexpected aggregate row for '{symbol_info.ticker}'") from e

        log.debug(
            "get_bars ticker=%s resolution=%s first=%s count=%d",
            symbol_info.ticker,
            resolution,
            first_data_request,
            len(bars),
        )
        return bars, HistoryMetadata(no_data=not bars)

    # -------------------------
    # Live subscriptions
    # -------------------------
    async def subscribe_bars(
        self,
        symbol_info: SymbolInfo,
        resolution: str,
        on_tick: Callable[[Bar], None],
        key: str,
    ) -> None:
        # Currently only minute subscriptions are live
        if not is_live_resolution(resolution):
            log.debug("Ignoring subscription key=%s resolution=%s", key, resolution)
            return

        key = str(key)
        self._subscriptions = [s for s in self._subscriptions if s.key != key]
        self._subscriptions.append(
            Subscription(key=key, symbol_info=symbol_info, interval=resolution, callback=on_tick)
        )
        log.info("Subscribed key=%s ticker=%s", key, symbol_info.ticker)

        if self.live is not None:
            await self.live.subscribe(channel_name(EventType.AGGREGATE_MINUTE, symbol_info.ticker))

    def unsubscribe_bars(self, key: str) -> None:
        key = str(key)
        self._subscriptions = [s for s in self._subscriptions if s.key != key]

    def _is_active(self, sub: Subscription) -> bool:
        return any(s is sub for s in self._subscriptions)

    def _deliver(self, sub: Subscription, bar: Bar) -> None:
        try:
            sub.callback(bar)
        except Exception:
            log.exception("Bar callback failed key=%s", sub.key)

    # polling mode
    def poll_once(self) -> List[asyncio.Task]:
        """Fetch the trailing window for every subscription, one task each."""
        end = self._clock()
        start = end - self.poll_window_s

        tasks: List[asyncio.Task] = []
        for sub in list(self._subscriptions):
            task = asyncio.create_task(self._poll_subscription(sub, start, end))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def _poll_subscription(self, sub: Subscription, start: float, end: float) -> None:
        try:
            bars, _ = await self.get_bars(sub.symbol_info, sub.interval, start, end)
        except Exception as e:
            log.warning("Poll failed key=%s ticker=%s error=%r", sub.key, sub.symbol_info.ticker, e)
            return

        if not bars:
            return
        # Unsubscribed while the request was in flight
        if not self._is_active(sub):
            return

        for bar in bars:
            self._deliver(sub, bar)

    # push mode
    def _on_aggregate(self, event: ProviderEvent) -> None:
        ticker = event.symbol
        try:
            bar = Bar.from_aggregate(event.record)
        except (KeyError, TypeError, ValueError):
            log.warning("Malformed aggregate record=%s", event.record)
            return

        for sub in list(self._subscriptions):
            if sub.symbol_info.ticker.upper() == ticker:
                self._deliver(sub, bar)
