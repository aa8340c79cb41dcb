from __future__ import annotations

import asyncio
import logging
import traceback
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datafeed.adapter import DatafeedAdapter


async def poll_loop(adapter: "DatafeedAdapter", interval_s: float) -> None:
    """
    Background loop (polling liveness mode):
    every `interval_s` seconds, ask the adapter to refresh each active
    subscription with the bars of the trailing poll window.

    Each subscription is fetched in its own task, so one slow or failing
    symbol never holds up the others.
    """
    log = logging.getLogger("bar_poller")
    log.info("Bar poller started interval=%.1fs", interval_s)

    while True:
        try:
            tasks = adapter.poll_once()
            if tasks:
                log.debug("Polling %d subscription(s)", len(tasks))
        except Exception as e:
            # Keep loop alive even if scheduling fails, but log the error.
            log.error("Poll cycle failed error=%s", repr(e))
            log.error(traceback.format_exc())

        await asyncio.sleep(interval_s)
