from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class Bar:
    """
    Bar = one OHLCV aggregate as the charting widget expects it.

    time: bucket start, epoch milliseconds
    open/high/low/close: prices during the bucket
    volume: traded volume during the bucket
    """
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_aggregate(cls, row: Mapping[str, Any]) -> "Bar":
        """
        Build a Bar from a provider aggregate record.

        REST aggregates carry the bucket start in `t`; streaming aggregates
        carry it in `s` (and the bucket end in `e`).
        """
        ts = row.get("s")
        if ts is None:
            ts = row.get("t")
        return cls(
            time=int(ts),
            open=row["o"],
            high=row["h"],
            low=row["l"],
            close=row["c"],
            volume=row["v"],
        )

    def to_dict(self) -> dict:
        return asdict(self)


class SymbolInfo(BaseModel):
    """
    Resolved symbol description handed back to the charting widget.

    Immutable once produced; the widget passes it back into get_bars and
    subscribe_bars.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    ticker: str
    description: str = ""
    type: str = "stock"
    exchange: str = ""
    listed_exchange: str = ""
    timezone: str = "America/New_York"
    session: str = "0930-1600"
    minmov: int = 1
    pricescale: int = 100
    has_intraday: bool = True
    has_daily: bool = True
    has_weekly_and_monthly: bool = True
    supported_resolutions: List[str] = []
    sector: Optional[str] = None
    currency_code: Optional[str] = None


class SymbolSearchResult(BaseModel):
    symbol: str
    full_name: str
    description: str = ""
    exchange: str = ""
    ticker: str
    type: str = "stock"


@dataclass(frozen=True)
class HistoryMetadata:
    """
    Continuation hint returned with a historical fetch.

    no_data: True when the requested range produced no bars
    next_time: epoch ms of an earlier boundary where more data may exist
    """
    no_data: bool
    next_time: Optional[int] = None


@dataclass
class Subscription:
    key: str
    symbol_info: SymbolInfo
    interval: str
    callback: Callable[[Bar], None]
