# datafeed/config.py
import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Loads variables from a local .env file into environment variables (dev only).
load_dotenv()


_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # App config
    app_env: str
    log_level: str
    provider: str

    # Provider config (Polygon)
    polygon_api_key: str
    polygon_base_url: str
    polygon_ws_url: str
    polygon_timeout_seconds: float

    # Liveness: push (websocket) or poll (REST)
    use_websockets: bool
    poll_interval_seconds: float
    poll_window_seconds: float
    ws_reconnect_seconds: float

    search_debounce_seconds: float


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def get_settings() -> Settings:
    """
    Reads env vars and returns a Settings object.
    """
    key = os.getenv("POLYGON_API_KEY", "").strip()
    if not key:
        raise RuntimeError("POLYGON_API_KEY is missing. Add it to .env")

    return Settings(
        app_env=os.getenv("APP_ENV", "local"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        provider=os.getenv("PROVIDER", "POLYGON"),
        polygon_api_key=key,
        polygon_base_url=os.getenv("POLYGON_BASE_URL", "https://api.polygon.io").rstrip("/"),
        polygon_ws_url=os.getenv("POLYGON_WS_URL", "wss://socket.polygon.io/stocks"),
        polygon_timeout_seconds=float(os.getenv("POLYGON_TIMEOUT_SECONDS", "20")),
        use_websockets=_env_flag("POLYGON_USE_WEBSOCKETS"),
        poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "15")),
        poll_window_seconds=float(os.getenv("POLL_WINDOW_SECONDS", "120")),
        ws_reconnect_seconds=float(os.getenv("WS_RECONNECT_SECONDS", "2")),
        search_debounce_seconds=float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.25")),
    )
