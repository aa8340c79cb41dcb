import asyncio
import os
import sys
from datetime import datetime, timezone

# Add repo root to Python import path so `import datafeed...` works
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from dotenv import load_dotenv

load_dotenv()

from datafeed.live.client import LiveFeedClient
from datafeed.models.events import EventType, channel_name

API_KEY = os.getenv("POLYGON_API_KEY")
WS_URL = os.getenv("POLYGON_WS_URL", "wss://socket.polygon.io/stocks")
SYMBOLS = os.getenv("WS_SYMBOLS", "AAPL")


async def main():
    if not API_KEY:
        raise RuntimeError("POLYGON_API_KEY missing. Put it in .env")

    client = LiveFeedClient(API_KEY, url=WS_URL)
    got = asyncio.Queue()

    def on_aggregate(event):
        got.put_nowait(event.record)

    client.on(EventType.AGGREGATE_MINUTE.value, on_aggregate)
    await client.subscribe([channel_name(EventType.AGGREGATE_MINUTE, s) for s in SYMBOLS.split(",") if s.strip()])
    client.start()
    print("Subscribed to:", client.channels)

    # Print the next 5 minute aggregates
    try:
        for i in range(5):
            try:
                rec = await asyncio.wait_for(got.get(), timeout=90)
            except asyncio.TimeoutError:
                print(i + 1, "NO_AGGREGATE_IN_90S (market likely closed)", "state:", client.state.value)
                break

            ts = datetime.fromtimestamp(float(rec["s"]) / 1000.0, tz=timezone.utc)
            print(i + 1, "AM:", rec.get("sym"), rec.get("o"), rec.get("h"), rec.get("l"), rec.get("c"), rec.get("v"), ts)
    finally:
        await client.stop()


if __name__ == "__main__":
    asyncio.run(main())
