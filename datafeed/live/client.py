"""
Polygon streaming client.

One logical connection to the push endpoint:
- authenticates with the API key as soon as the socket opens
- flushes the full channel set after authenticating, then sends only new
  channels while connected
- reconnects after a fixed delay whenever the socket errors or closes,
  forever
- re-publishes every non-status record to listeners registered for its `ev`
  tag, synchronously and in arrival order
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import websockets

from datafeed.models.events import ProviderEvent

log = logging.getLogger("polygon_ws")

Listener = Callable[[ProviderEvent], None]
Connector = Callable[[str], AsyncContextManager[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"


def _ws_connect(url: str) -> AsyncContextManager[Any]:
    return websockets.connect(url, ping_interval=20, ping_timeout=20)


def _flatten(channels: Union[str, Iterable[Any]]) -> List[str]:
    if isinstance(channels, str):
        return [channels]
    out: List[str] = []
    for c in channels:
        out.extend(_flatten(c))
    return out


class LiveFeedClient:
    def __init__(
        self,
        api_key: str,
        url: str = "wss://socket.polygon.io/stocks",
        reconnect_delay: float = 2.0,
        connector: Optional[Connector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.reconnect_delay = reconnect_delay
        self._connect = connector or _ws_connect
        self._sleep = sleep

        self.state = ConnectionState.DISCONNECTED
        self.channels: List[str] = []
        self.reconnects = 0

        self._ws: Any = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self) -> asyncio.Task:
        """Spawn the connect/reconnect loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="polygon_ws")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        log.info("Polygon WS client started url=%s", self.url)
        while True:
            await self._connect_once()
            self.reconnects += 1
            log.warning("Polygon WS reconnecting in %.1fs (attempt=%d)", self.reconnect_delay, self.reconnects)
            await self._sleep(self.reconnect_delay)

    async def _connect_once(self) -> None:
        self.state = ConnectionState.CONNECTING
        try:
            async with self._connect(self.url) as ws:
                self._ws = ws
                await self._on_open()
                async for raw in ws:
                    self.handle_message(raw)
            log.warning("Polygon WS closed")
        except Exception as e:
            log.warning("Polygon WS error: %s", e)
        finally:
            self._ws = None
            self.state = ConnectionState.DISCONNECTED

    async def _on_open(self) -> None:
        self.state = ConnectionState.AUTHENTICATING
        await self._ws.send(json.dumps({"action": "auth", "params": self.api_key}))

        self.state = ConnectionState.CONNECTED
        # Full set, not a delta: covers subscribe() calls made while offline.
        await self._send_subscriptions(list(self.channels))

    # -------------------------
    # Subscriptions
    # -------------------------
    async def subscribe(self, channels: Union[str, Iterable[Any]]) -> List[str]:
        """
        Track channel(s) and, if connected, subscribe to the new ones now.

        Returns the channels that were not tracked before.
        """
        added: List[str] = []
        for c in _flatten(channels):
            if c and c not in self.channels and c not in added:
                added.append(c)
        self.channels.extend(added)

        if added and self.connected:
            try:
                await self._send_subscriptions(added)
            except Exception as e:
                # Channels stay tracked; the next full-set flush picks them up.
                log.warning("Polygon WS subscribe send failed channels=%s error: %s", added, e)
        return added

    async def _send_subscriptions(self, channels: List[str]) -> None:
        if not channels:
            return
        await self._ws.send(json.dumps({"action": "subscribe", "params": ",".join(channels)}))
        log.info("Polygon WS subscribed channels=%s", channels)

    # -------------------------
    # Events
    # -------------------------
    def on(self, ev: str, listener: Listener) -> None:
        self._listeners[str(ev)].append(listener)

    def off(self, ev: str, listener: Listener) -> None:
        listeners = self._listeners.get(str(ev), [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: ProviderEvent) -> None:
        for listener in list(self._listeners.get(event.ev, ())):
            try:
                listener(event)
            except Exception:
                log.exception("Polygon WS listener failed ev=%s", event.ev)

    def handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            log.warning("Polygon WS undecodable frame=%r", raw)
            return

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            log.warning("Polygon WS unexpected frame type=%s", type(data).__name__)
            return

        for record in data:
            if not isinstance(record, dict) or record.get("ev") is None:
                continue

            event = ProviderEvent(ev=str(record["ev"]), record=record)
            if event.is_status:
                log.info("Polygon WS status=%s message=%s", record.get("status"), record.get("message"))
                continue

            self.emit(event)
