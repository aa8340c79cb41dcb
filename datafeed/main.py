import logging

from fastapi import FastAPI

from datafeed.adapter import DatafeedAdapter
from datafeed.api.routes import router as api_router
from datafeed.config import get_settings
from datafeed.providers.loader import get_provider

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Polygon Datafeed API", version="0.1.0")
app.include_router(api_router)


@app.on_event("startup")
async def _startup():
    # One adapter per process; liveness mode (poll vs push) is fixed here.
    provider = get_provider(settings)
    adapter = DatafeedAdapter.from_settings(settings, provider)
    await adapter.on_ready()
    app.state.adapter = adapter


@app.on_event("shutdown")
async def _shutdown():
    adapter = getattr(app.state, "adapter", None)
    if adapter is not None:
        await adapter.close()


@app.get("/health")
def health():
    adapter = getattr(app.state, "adapter", None)
    live = adapter.live if adapter is not None else None
    return {
        "status": "ok",
        "app_env": settings.app_env,
        "provider_config": settings.provider,
        "mode": "push" if settings.use_websockets else "poll",
        "subscriptions": len(adapter.subscriptions) if adapter is not None else 0,
        "ws_state": live.state.value if live is not None else None,
    }
