"""Tests for provider adapters against a mocked HTTP transport."""

from __future__ import annotations

from datetime import date, datetime, timezone

import httpx
import pytest

from marketetl.core.config import Settings
from marketetl.core.exceptions import ConfigurationError, FailureReason
from marketetl.domain.results import Failure, Success
from marketetl.services.providers import (
    FinnhubFundamentalsAdapter,
    FinnhubQuoteAdapter,
    PolygonAggregatesAdapter,
    build_adapters,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_handler(body, status_code: int = 200, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)

    return handler


def raw_handler(text: str):
    """Serve ``text`` verbatim, for bodies ``json.dumps`` would refuse (NaN, 1e400)."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=text)

    return handler


async def fetch(adapter_cls, handler, symbol: str = "aapl"):
    async with mock_client(handler) as client:
        adapter = adapter_cls(client, "key", "https://provider.test")
        return await adapter.fetch(symbol)


class TestTransportFailures:
    """Shared error mapping in BaseAdapter."""

    @pytest.mark.asyncio
    async def test_429_is_rate_limited(self):
        result = await fetch(FinnhubQuoteAdapter, json_handler({}, status_code=429))
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_5xx_is_transport_error(self):
        result = await fetch(FinnhubQuoteAdapter, json_handler({}, status_code=503))
        assert result.reason == FailureReason.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_network_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await fetch(FinnhubQuoteAdapter, handler)
        assert result.reason == FailureReason.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = await fetch(PolygonAggregatesAdapter, handler)
        assert result.reason == FailureReason.TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_non_json_is_malformed(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        result = await fetch(FinnhubQuoteAdapter, handler)
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_json_array_is_malformed(self):
        result = await fetch(FinnhubFundamentalsAdapter, json_handler([1, 2, 3]))
        assert result.reason == FailureReason.MALFORMED_RESPONSE


class TestFinnhubQuote:
    QUOTE = {"c": 191.2, "d": 1.2, "dp": 0.63, "h": 192.0, "l": 189.5, "o": 190.0, "pc": 190.0, "t": 1773153000}

    @pytest.mark.asyncio
    async def test_maps_quote(self):
        seen: list[httpx.Request] = []
        result = await fetch(FinnhubQuoteAdapter, json_handler(self.QUOTE, seen=seen))

        assert isinstance(result, Success)
        quote = result.payload
        assert quote.last_price == 191.2
        assert quote.previous_close == 190.0
        assert quote.change_percent == 0.63
        assert quote.timestamp == datetime.fromtimestamp(1773153000, tz=timezone.utc)

        request = seen[0]
        assert request.url.path == "/quote"
        assert request.url.params["symbol"] == "AAPL"
        assert request.url.params["token"] == "key"

    @pytest.mark.asyncio
    async def test_all_zero_quote_is_no_data(self):
        body = {"c": 0, "d": None, "dp": None, "h": 0, "l": 0, "o": 0, "pc": 0, "t": 0}
        result = await fetch(FinnhubQuoteAdapter, json_handler(body))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_zero_timestamp_is_no_data(self):
        body = dict(self.QUOTE, t=0)
        result = await fetch(FinnhubQuoteAdapter, json_handler(body))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_error_body_is_no_data(self):
        result = await fetch(FinnhubQuoteAdapter, json_handler({"error": "Symbol not supported"}))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_missing_price_is_malformed(self):
        result = await fetch(FinnhubQuoteAdapter, json_handler({"h": 1.0}))
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_non_numeric_price_is_malformed(self):
        body = dict(self.QUOTE, c="n/a")
        result = await fetch(FinnhubQuoteAdapter, json_handler(body))
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_zero_open_is_not_supplied(self):
        body = dict(self.QUOTE, o=0)
        result = await fetch(FinnhubQuoteAdapter, json_handler(body))
        assert result.payload.open_price is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", '"nan"'])
    async def test_non_finite_price_is_malformed(self, literal):
        text = f'{{"c": {literal}, "h": 192.0, "l": 189.5, "o": 190.0, "pc": 190.0, "t": 1773153000}}'
        result = await fetch(FinnhubQuoteAdapter, raw_handler(text))
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_is_malformed(self):
        body = dict(self.QUOTE, t=1e20)
        result = await fetch(FinnhubQuoteAdapter, json_handler(body))
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.MALFORMED_RESPONSE
        assert "timestamp" in result.detail


class TestFinnhubFundamentals:
    METRIC = {
        "metric": {
            "marketCapitalization": 2950000.5,
            "peTTM": 29.4,
            "roeTTM": 151.3,
            "pbAnnual": 45.1,
            "totalDebt/totalEquityAnnual": 1.8,
            "currentRatioAnnual": 0.99,
            "dividendYieldIndicatedAnnual": 0.5,
        },
        "symbol": "AAPL",
    }

    @pytest.mark.asyncio
    async def test_normalizes_units(self):
        seen: list[httpx.Request] = []
        result = await fetch(FinnhubFundamentalsAdapter, json_handler(self.METRIC, seen=seen))

        metrics = result.payload
        assert metrics.market_cap == pytest.approx(2950000.5 * 1e6)
        assert metrics.dividend_yield == pytest.approx(0.005)
        assert metrics.pe_ttm == 29.4
        assert metrics.debt_to_equity == 1.8
        assert seen[0].url.params["metric"] == "all"

    @pytest.mark.asyncio
    async def test_falls_back_to_alternate_keys(self):
        body = {"metric": {"peBasicExclExtraTTM": 14.0, "currentRatioQuarterly": 1.4, "pbQuarterly": 2.0}}
        result = await fetch(FinnhubFundamentalsAdapter, json_handler(body))
        assert result.payload.pe_ttm == 14.0
        assert result.payload.current_ratio == 1.4
        assert result.payload.pb_ratio == 2.0
        assert result.payload.market_cap is None

    @pytest.mark.asyncio
    async def test_empty_metric_is_no_data(self):
        result = await fetch(FinnhubFundamentalsAdapter, json_handler({"metric": {}, "symbol": "ZZZZ"}))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_missing_metric_is_no_data(self):
        result = await fetch(FinnhubFundamentalsAdapter, json_handler({"symbol": "ZZZZ"}))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_error_key_is_no_data(self):
        result = await fetch(FinnhubFundamentalsAdapter, json_handler({"error": "no access"}))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_non_finite_metric_is_not_supplied(self):
        text = '{"metric": {"peTTM": NaN, "peBasicExclExtraTTM": 14.0, "roeTTM": Infinity}}'
        result = await fetch(FinnhubFundamentalsAdapter, raw_handler(text))
        assert result.payload.pe_ttm == 14.0
        assert result.payload.roe_ttm is None

    @pytest.mark.asyncio
    async def test_metric_list_is_malformed(self):
        result = await fetch(FinnhubFundamentalsAdapter, json_handler({"metric": ["x"]}))
        assert result.reason == FailureReason.MALFORMED_RESPONSE


class TestPolygonAggregates:
    BODY = {
        "ticker": "AAPL",
        "status": "OK",
        "resultsCount": 1,
        "results": [
            {"T": "AAPL", "o": 190.0, "h": 192.0, "l": 189.0, "c": 191.0, "v": 5.2e7, "vw": 190.7, "n": 612345, "t": 1773086400000}
        ],
    }

    @pytest.mark.asyncio
    async def test_maps_previous_bar(self):
        seen: list[httpx.Request] = []
        result = await fetch(PolygonAggregatesAdapter, json_handler(self.BODY, seen=seen))

        bar = result.payload
        assert bar.volume == 5.2e7
        assert bar.vwap == 190.7
        assert bar.trade_count == 612345
        assert bar.session_date == date(2026, 3, 9)
        assert seen[0].url.path == "/v2/aggs/ticker/AAPL/prev"
        assert seen[0].url.params["apiKey"] == "key"

    @pytest.mark.asyncio
    async def test_empty_results_is_no_data(self):
        body = {"ticker": "ZZZZ", "status": "OK", "resultsCount": 0, "results": []}
        result = await fetch(PolygonAggregatesAdapter, json_handler(body))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_error_status_is_no_data(self):
        result = await fetch(PolygonAggregatesAdapter, json_handler({"status": "NOT_FOUND"}))
        assert result.reason == FailureReason.NO_DATA

    @pytest.mark.asyncio
    async def test_delayed_status_is_accepted(self):
        body = dict(self.BODY, status="DELAYED")
        result = await fetch(PolygonAggregatesAdapter, json_handler(body))
        assert isinstance(result, Success)

    @pytest.mark.asyncio
    async def test_negative_volume_is_malformed(self):
        body = dict(self.BODY, results=[dict(self.BODY["results"][0], v=-1)])
        result = await fetch(PolygonAggregatesAdapter, json_handler(body))
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_infinite_trade_count_is_malformed(self):
        text = '{"status": "OK", "results": [{"o": 190.0, "c": 191.0, "v": 5.2e7, "n": 1e400}]}'
        result = await fetch(PolygonAggregatesAdapter, raw_handler(text))
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_out_of_range_timestamp_is_malformed(self):
        body = dict(self.BODY, results=[dict(self.BODY["results"][0], t=1e20)])
        result = await fetch(PolygonAggregatesAdapter, json_handler(body))
        assert isinstance(result, Failure)
        assert result.reason == FailureReason.MALFORMED_RESPONSE


class TestBuildAdapters:
    @pytest.mark.asyncio
    async def test_call_order(self):
        settings = Settings(_env_file=None, finnhub_api_key="f", polygon_api_key="p")
        async with httpx.AsyncClient() as client:
            adapters = build_adapters(settings, client)
        assert [type(a) for a in adapters] == [
            FinnhubQuoteAdapter,
            PolygonAggregatesAdapter,
            FinnhubFundamentalsAdapter,
        ]

    @pytest.mark.asyncio
    async def test_missing_key_is_configuration_error(self):
        settings = Settings(_env_file=None, finnhub_api_key="f", polygon_api_key="")
        async with httpx.AsyncClient() as client:
            with pytest.raises(ConfigurationError) as exc_info:
                build_adapters(settings, client)
        assert exc_info.value.details == {"missing": ["POLYGON_API_KEY"]}
