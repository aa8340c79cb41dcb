import unittest

import httpx

from datafeed.errors import ProviderError, SymbolNotFoundError
from datafeed.providers.polygon import PolygonProvider


class TestPolygonProvider(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(200, json={})

        def handler(request):
            self.requests.append(request)
            return self.responder(request)

        self.provider = PolygonProvider(
            "KEY",
            base_url="https://api.example.test",
            transport=httpx.MockTransport(handler),
        )

    async def asyncTearDown(self):
        await self.provider.close()

    async def test_aggregates_request_and_partial_rows(self):
        self.responder = lambda request: httpx.Response(
            200,
            json={
                "status": "OK",
                "results": [
                    {"t": 1000, "o": 1, "h": 2, "l": 0.5, "c": 1.5, "v": 10},
                    {"t": 2000, "o": 1, "h": 2, "l": 0.5, "c": None, "v": 10},
                ],
            },
        )

        rows = await self.provider.aggregates("AAPL", 5, "minute", 100000, 200000)

        req = self.requests[0]
        self.assertEqual(req.url.path, "/v2/aggs/ticker/AAPL/range/5/minute/100000/200000")
        self.assertEqual(req.url.params["apiKey"], "KEY")
        self.assertEqual(req.url.params["sort"], "asc")
        self.assertEqual([r["t"] for r in rows], [1000])

    async def test_aggregates_without_results_is_empty(self):
        self.responder = lambda request: httpx.Response(200, json={"status": "OK", "resultsCount": 0})

        self.assertEqual(await self.provider.aggregates("AAPL", 1, "day", 0, 1), [])

    async def test_non_2xx_raises_provider_error(self):
        self.responder = lambda request: httpx.Response(500, text="oops")

        with self.assertRaises(ProviderError) as ctx:
            await self.provider.aggregates("AAPL", 1, "minute", 0, 1)
        self.assertEqual(ctx.exception.status_code, 500)

    async def test_invalid_json_raises_provider_error(self):
        self.responder = lambda request: httpx.Response(200, text="<html>")

        with self.assertRaises(ProviderError):
            await self.provider.search_tickers("AAPL")

    async def test_transport_error_raises_provider_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        self.responder = refuse

        with self.assertRaises(ProviderError):
            await self.provider.ticker_details("AAPL")

    async def test_search_tickers_params(self):
        self.responder = lambda request: httpx.Response(
            200, json={"results": [{"ticker": "AAPL"}, "junk"]}
        )

        rows = await self.provider.search_tickers("app", exchange="XNAS", market="stocks", limit=5)

        params = self.requests[0].url.params
        self.assertEqual(self.requests[0].url.path, "/v3/reference/tickers")
        self.assertEqual(params["search"], "app")
        self.assertEqual(params["exchange"], "XNAS")
        self.assertEqual(params["market"], "stocks")
        self.assertEqual(params["limit"], "5")
        self.assertEqual(rows, [{"ticker": "AAPL"}])

    async def test_ticker_details(self):
        self.responder = lambda request: httpx.Response(
            200, json={"status": "OK", "results": {"ticker": "AAPL", "name": "Apple Inc."}}
        )

        details = await self.provider.ticker_details("AAPL")

        self.assertEqual(self.requests[0].url.path, "/v3/reference/tickers/AAPL")
        self.assertEqual(details["name"], "Apple Inc.")

    async def test_ticker_details_not_found(self):
        self.responder = lambda request: httpx.Response(404, json={"status": "NOT_FOUND"})

        with self.assertRaises(SymbolNotFoundError):
            await self.provider.ticker_details("NOPE")


class TestPolygonProviderConfig(unittest.TestCase):
    def test_missing_key_is_rejected(self):
        with self.assertRaises(RuntimeError):
            PolygonProvider("")


if __name__ == "__main__":
    unittest.main()
