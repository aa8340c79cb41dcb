import os
import unittest
from unittest import mock

from datafeed.config import get_settings
from datafeed.providers.loader import get_provider
from datafeed.providers.polygon import PolygonProvider


class TestSettings(unittest.TestCase):
    def test_missing_api_key_raises(self):
        with mock.patch.dict(os.environ, {"POLYGON_API_KEY": "  "}):
            with self.assertRaises(RuntimeError):
                get_settings()

    def test_defaults(self):
        with mock.patch.dict(os.environ, {"POLYGON_API_KEY": "KEY"}):
            for name in ("POLYGON_USE_WEBSOCKETS", "POLL_INTERVAL_SECONDS", "WS_RECONNECT_SECONDS"):
                os.environ.pop(name, None)
            settings = get_settings()

        self.assertEqual(settings.polygon_api_key, "KEY")
        self.assertFalse(settings.use_websockets)
        self.assertEqual(settings.poll_interval_seconds, 15.0)
        self.assertEqual(settings.ws_reconnect_seconds, 2.0)

    def test_websocket_flag(self):
        with mock.patch.dict(os.environ, {"POLYGON_API_KEY": "KEY", "POLYGON_USE_WEBSOCKETS": "True"}):
            self.assertTrue(get_settings().use_websockets)

    def test_unknown_provider_rejected(self):
        with mock.patch.dict(os.environ, {"POLYGON_API_KEY": "KEY", "PROVIDER": "EODHD"}):
            with self.assertRaises(ValueError):
                get_provider()


class TestProviderLoader(unittest.IsolatedAsyncioTestCase):
    async def test_polygon_provider_loaded(self):
        with mock.patch.dict(os.environ, {"POLYGON_API_KEY": "KEY", "PROVIDER": "polygon"}):
            provider = get_provider()

        self.assertIsInstance(provider, PolygonProvider)
        await provider.close()


if __name__ == "__main__":
    unittest.main()
