"""Polygon.io adapter: previous-session aggregate bar."""

from __future__ import annotations

from marketetl.core.exceptions import MalformedResponseError, SentinelDataError
from marketetl.core.pacer import POLYGON
from marketetl.domain.market import AggregatePayload

from .base import BaseAdapter, as_float


class PolygonAggregatesAdapter(BaseAdapter[AggregatePayload]):
    """``GET /v2/aggs/ticker/{symbol}/prev`` -> ``AggregatePayload``."""

    provider_id = POLYGON
    name = "polygon.prev"

    async def _fetch(self, symbol: str) -> AggregatePayload:
        data = self._expect_mapping(
            await self._get_json(
                f"/v2/aggs/ticker/{symbol}/prev",
                {"adjusted": "true", "apiKey": self._api_key},
            )
        )

        status = data.get("status")
        if status not in ("OK", "DELAYED"):
            raise SentinelDataError(self.provider_id, f"status={status!r}")

        results = data.get("results") or []
        if not isinstance(results, list):
            raise MalformedResponseError(self.provider_id, "'results' is not a list")
        if not results:
            raise SentinelDataError(self.provider_id, "no results")

        bar = results[0]
        if not isinstance(bar, dict):
            raise MalformedResponseError(self.provider_id, "result bar is not an object")

        self._require_numeric(bar, ("o", "h", "l", "c", "v", "vw", "n", "t"))
        if not any(as_float(bar.get(key)) for key in ("o", "h", "l", "c", "v")):
            raise SentinelDataError(self.provider_id, "all-zero aggregate bar")

        session_start = self._epoch_to_datetime(bar.get("t"), per_second=1000)
        trade_count = as_float(bar.get("n"))

        return self._validate(
            AggregatePayload,
            {
                "open": as_float(bar.get("o")),
                "high": as_float(bar.get("h")),
                "low": as_float(bar.get("l")),
                "close": as_float(bar.get("c")),
                "volume": as_float(bar.get("v")),
                "vwap": as_float(bar.get("vw")),
                "trade_count": int(trade_count) if trade_count is not None else None,
                "session_date": session_start.date() if session_start else None,
            },
        )
