"""Finnhub adapters: real-time quote and fundamentals metrics."""

from __future__ import annotations

from typing import Any

from marketetl.core.exceptions import MalformedResponseError, SentinelDataError
from marketetl.core.pacer import FINNHUB
from marketetl.domain.market import FundamentalsPayload, QuotePayload

from .base import BaseAdapter, as_float


class FinnhubQuoteAdapter(BaseAdapter[QuotePayload]):
    """``GET /quote`` -> ``QuotePayload``.

    Finnhub answers unknown or delisted symbols with HTTP 200 and a body of
    zeros (``{"c": 0, "h": 0, "l": 0, "o": 0, "pc": 0, "t": 0}``). That is
    reported as ``no_data``, never as a zero price.
    """

    provider_id = FINNHUB
    name = "finnhub.quote"

    async def _fetch(self, symbol: str) -> QuotePayload:
        data = self._expect_mapping(
            await self._get_json("/quote", {"symbol": symbol, "token": self._api_key})
        )

        if data.get("error"):
            raise SentinelDataError(self.provider_id, str(data["error"]))
        if "c" not in data:
            raise MalformedResponseError(self.provider_id, "quote has no 'c' field")
        self._require_numeric(data, ("c", "o", "h", "l", "pc", "d", "dp", "t"))

        prices = {key: as_float(data.get(key)) for key in ("c", "o", "h", "l", "pc")}
        if not any(prices.values()):
            raise SentinelDataError(self.provider_id, "all-zero quote")
        if not prices["c"]:
            raise SentinelDataError(self.provider_id, "zero last price")
        if "t" in data and not as_float(data["t"]):
            raise SentinelDataError(self.provider_id, "zero quote timestamp")

        return self._validate(
            QuotePayload,
            {
                "last_price": prices["c"],
                "open_price": prices["o"] or None,
                "high_price": prices["h"] or None,
                "low_price": prices["l"] or None,
                "previous_close": prices["pc"] or None,
                "change_amount": as_float(data.get("d")),
                "change_percent": as_float(data.get("dp")),
                "timestamp": self._epoch_to_datetime(data.get("t")),
            },
        )


class FinnhubFundamentalsAdapter(BaseAdapter[FundamentalsPayload]):
    """``GET /stock/metric?metric=all`` -> ``FundamentalsPayload``.

    Market capitalization arrives in millions of USD and dividend yield in
    percent; both are normalized (USD, fraction).
    """

    provider_id = FINNHUB
    name = "finnhub.metrics"

    async def _fetch(self, symbol: str) -> FundamentalsPayload:
        data = self._expect_mapping(
            await self._get_json(
                "/stock/metric",
                {"symbol": symbol, "metric": "all", "token": self._api_key},
            )
        )

        if data.get("error"):
            raise SentinelDataError(self.provider_id, str(data["error"]))

        metric = data.get("metric")
        if metric is None or metric == {}:
            raise SentinelDataError(self.provider_id, "empty metric set")
        if not isinstance(metric, dict):
            raise MalformedResponseError(self.provider_id, "'metric' is not an object")

        market_cap_millions = _first(metric, "marketCapitalization")
        dividend_pct = _first(metric, "dividendYieldIndicatedAnnual", "currentDividendYieldTTM")

        fields = {
            "market_cap": market_cap_millions * 1_000_000 if market_cap_millions else None,
            "pe_ttm": _first(metric, "peTTM", "peBasicExclExtraTTM", "peExclExtraTTM"),
            "roe_ttm": _first(metric, "roeTTM"),
            "pb_ratio": _first(metric, "pbAnnual", "pbQuarterly"),
            "debt_to_equity": _first(
                metric,
                "totalDebt/totalEquityAnnual",
                "totalDebt/totalEquityQuarterly",
                "totalDebt2TotalEquityAnnual",
            ),
            "current_ratio": _first(metric, "currentRatioAnnual", "currentRatioQuarterly"),
            "dividend_yield": dividend_pct / 100 if dividend_pct is not None else None,
        }
        if all(value is None for value in fields.values()):
            raise SentinelDataError(self.provider_id, "no usable metrics")

        return self._validate(FundamentalsPayload, fields)


def _first(metric: dict[str, Any], *keys: str) -> float | None:
    for key in keys:
        value = as_float(metric.get(key))
        if value is not None:
            return value
    return None
