from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Dict, List

from fastapi import APIRouter, HTTPException, Query, Request, WebSocket, WebSocketDisconnect

from datafeed.adapter import DatafeedAdapter, strip_exchange
from datafeed.errors import ProviderError, SymbolNotFoundError, UnsupportedResolutionError
from datafeed.models.market import Bar, SymbolInfo, SymbolSearchResult

router = APIRouter()
log = logging.getLogger("datafeed_api")

_connection_ids = itertools.count(1)


def get_adapter(request: Request) -> DatafeedAdapter:
    return request.app.state.adapter


@router.get("/config")
def config(request: Request):
    return get_adapter(request).configuration()


@router.get("/search", response_model=List[SymbolSearchResult])
async def search(
    request: Request,
    query: str = Query(..., description="User search input"),
    exchange: str = Query("", description="Exchange filter, e.g. XNAS"),
    symbol_type: str = Query("", alias="type", description="Symbol type filter: stock, crypto, forex, index"),
    limit: int = Query(30, ge=1, le=1000),
):
    """
    Ticker search. Never fails: provider errors come back as an empty list.

    Uses the undebounced search; every HTTP request is already one search.
    """
    return await get_adapter(request).find_symbols(query, exchange, symbol_type, limit)


@router.get("/symbols")
async def symbols(
    request: Request,
    symbol: str = Query(..., description="Symbol, optionally prefixed with exchange, e.g. XNAS:AAPL"),
):
    try:
        info = await get_adapter(request).resolve_symbol(symbol)
    except SymbolNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return info.model_dump()


@router.get("/history")
async def history(
    request: Request,
    symbol: str = Query(..., description="Ticker symbol, e.g. AAPL"),
    resolution: str = Query(..., description="Resolution token, e.g. 1, 60, 1D"),
    from_: int = Query(..., alias="from", description="Range start, epoch seconds"),
    to: int = Query(..., description="Range end, epoch seconds"),
    first_data_request: bool = Query(False, alias="firstDataRequest"),
):
    """
    UDF-style history:
      {"s": "ok", "t": [...], "o": [...], "h": [...], "l": [...], "c": [...], "v": [...]}
      {"s": "no_data"}
      {"s": "error", "errmsg": "..."}
    """
    adapter = get_adapter(request)
    # Aggregates only need the ticker; skip the details round trip.
    ticker = strip_exchange(symbol)
    if not ticker:
        return {"s": "error", "errmsg": f"Unknown symbol '{symbol}'"}
    info = SymbolInfo(name=ticker, ticker=ticker)
    try:
        bars, meta = await adapter.get_bars(info, resolution, from_, to, first_data_request)
    except (ProviderError, UnsupportedResolutionError) as e:
        log.warning("History failed symbol=%s resolution=%s error=%s", symbol, resolution, e)
        return {"s": "error", "errmsg": str(e)}

    if meta.no_data:
        out: Dict = {"s": "no_data"}
        if meta.next_time is not None:
            out["nextTime"] = meta.next_time // 1000
        return out

    return {
        "s": "ok",
        "t": [b.time // 1000 for b in bars],
        "o": [b.open for b in bars],
        "h": [b.high for b in bars],
        "l": [b.low for b in bars],
        "c": [b.close for b in bars],
        "v": [b.volume for b in bars],
    }


@router.websocket("/ws/bars")
async def ws_bars(websocket: WebSocket):
    """
    Live bar subscriptions for one browser connection.

    client -> {"action": "subscribe", "symbol": "AAPL", "resolution": "1", "key": "abc"}
              {"action": "unsubscribe", "key": "abc"}
    server -> {"key": "abc", "bar": {...}} | {"error": "..."}
    """
    adapter: DatafeedAdapter = websocket.app.state.adapter
    await websocket.accept()

    # Keys are scoped per connection so two browsers can reuse the same key.
    prefix = f"ws{next(_connection_ids)}:"
    keys: set[str] = set()
    outbox: asyncio.Queue = asyncio.Queue()

    async def pump() -> None:
        while True:
            msg = await outbox.get()
            await websocket.send_json(msg)

    def on_bar_for(key: str):
        def on_bar(bar: Bar) -> None:
            outbox.put_nowait({"key": key, "bar": bar.to_dict()})

        return on_bar

    sender = asyncio.create_task(pump())
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
                action = msg["action"]
                key = str(msg["key"])
            except (ValueError, KeyError, TypeError):
                outbox.put_nowait({"error": "invalid message"})
                continue

            if action == "subscribe":
                try:
                    info = await adapter.resolve_symbol(str(msg.get("symbol", "")))
                except ProviderError as e:
                    outbox.put_nowait({"key": key, "error": str(e)})
                    continue
                # Tracked before the await so a failing subscribe is still cleaned up.
                keys.add(key)
                await adapter.subscribe_bars(info, str(msg.get("resolution", "")), on_bar_for(key), prefix + key)
            elif action == "unsubscribe":
                adapter.unsubscribe_bars(prefix + key)
                keys.discard(key)
            else:
                outbox.put_nowait({"key": key, "error": f"unknown action '{action}'"})
    except WebSocketDisconnect:
        pass
    finally:
        for key in keys:
            adapter.unsubscribe_bars(prefix + key)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.warning("WS bar sender failed error=%r", e)
