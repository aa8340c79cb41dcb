from __future__ import annotations

import re
from typing import Tuple

from datafeed.errors import UnsupportedResolutionError

# Finest granularity; the only resolution eligible for live updates.
LIVE_RESOLUTION = "1"

SUPPORTED_RESOLUTIONS = ["1", "5", "15", "30", "45", "60", "120", "240", "1D", "1W", "1M"]

_PERIOD_TIMESPANS = {"D": "day", "W": "week", "M": "month"}
_PERIOD_RE = re.compile(r"^(\d*)([DWM])$")


def resolution_to_range(resolution: str) -> Tuple[int, str]:
    """
    Map a charting resolution token to an aggregates (multiplier, timespan).

      "1"   -> (1, "minute")     "45"  -> (45, "minute")
      "60"  -> (1, "hour")       "240" -> (4, "hour")
      "D"/"1D" -> (1, "day")     "2W"  -> (2, "week")
    """
    res = (resolution or "").strip().upper()

    if res.isdigit():
        minutes = int(res)
        if minutes <= 0:
            raise UnsupportedResolutionError(resolution)
        if minutes >= 60 and minutes % 60 == 0:
            return minutes // 60, "hour"
        return minutes, "minute"

    m = _PERIOD_RE.match(res)
    if m:
        count = int(m.group(1) or "1")
        if count <= 0:
            raise UnsupportedResolutionError(resolution)
        return count, _PERIOD_TIMESPANS[m.group(2)]

    raise UnsupportedResolutionError(resolution)


def is_live_resolution(resolution: str) -> bool:
    return (resolution or "").strip() == LIVE_RESOLUTION
