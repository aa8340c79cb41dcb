from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventType(str, Enum):
    """
    Record tags sent on the provider's stock stream (the `ev` field).
    """

    STATUS = "status"
    AGGREGATE_MINUTE = "AM"
    AGGREGATE_SECOND = "A"
    TRADE = "T"
    QUOTE = "Q"


def channel_name(event_type: EventType, ticker: str) -> str:
    """Streaming topic for one ticker, e.g. AM.AAPL."""
    return f"{event_type.value}.{ticker.upper()}"


@dataclass(frozen=True)
class ProviderEvent:
    """
    One record from a stream frame.

    ev: the raw tag; unknown tags are kept as strings and still dispatched
    record: the full record as received
    """
    ev: str
    record: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_status(self) -> bool:
        return self.ev == EventType.STATUS.value

    @property
    def symbol(self) -> str | None:
        sym = self.record.get("sym")
        return str(sym).upper() if sym is not None else None
