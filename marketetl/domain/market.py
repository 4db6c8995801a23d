"""Market data domain models.

Normalized provider payloads and the instrument snapshot the merger works
on. Provider responses are validated into these models at the adapter
boundary; nothing downstream touches raw provider JSON.
"""

from __future__ import annotations

from datetime import date as DateType
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MarketStatus(str, Enum):
    """Trading-session state derived from a quote timestamp."""

    UNKNOWN = "Unknown"
    CLOSED = "Closed"
    OPEN = "Open"
    PRE_MARKET = "PreMarket"
    POST_MARKET = "PostMarket"


class QuotePayload(BaseModel):
    """Real-time quote snapshot."""

    last_price: float = Field(..., description="Current/last trade price")
    open_price: float | None = None
    high_price: float | None = None
    low_price: float | None = None
    previous_close: float | None = None
    change_amount: float | None = Field(None, description="Provider-reported change")
    change_percent: float | None = Field(None, description="Provider-reported change %")
    timestamp: datetime | None = Field(None, description="Quote time (UTC)")


class AggregatePayload(BaseModel):
    """Prior-session aggregate bar."""

    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = Field(None, ge=0)
    vwap: float | None = None
    trade_count: int | None = Field(None, ge=0)
    session_date: DateType | None = None


class FundamentalsPayload(BaseModel):
    """Valuation and profitability metrics."""

    market_cap: float | None = Field(None, description="Market capitalization in USD")
    pe_ttm: float | None = None
    roe_ttm: float | None = Field(None, description="Return on equity, percent")
    pb_ratio: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    dividend_yield: float | None = Field(None, description="Annual yield as a fraction")


PRICING_FIELDS: tuple[str, ...] = (
    "last_price",
    "open_price",
    "high_price",
    "low_price",
    "previous_close",
    "change_amount",
    "change_percent",
    "volume",
    "turnover",
    "vwap",
    "trade_count",
)

FUNDAMENTAL_FIELDS: tuple[str, ...] = (
    "market_cap",
    "pe_ttm",
    "roe_ttm",
    "pb_ratio",
    "debt_to_equity",
    "current_ratio",
    "dividend_yield",
)


class InstrumentSnapshot(BaseModel):
    """Mutable attributes of one instrument record, as seen by the merger."""

    symbol: str
    last_price: float | None = None
    open_price: float | None = None
    high_price: float | None = None
    low_price: float | None = None
    previous_close: float | None = None
    change_amount: float | None = None
    change_percent: float | None = None
    volume: float | None = None
    turnover: float | None = None
    vwap: float | None = None
    trade_count: int | None = None
    market_cap: float | None = None
    pe_ttm: float | None = None
    roe_ttm: float | None = None
    pb_ratio: float | None = None
    debt_to_equity: float | None = None
    current_ratio: float | None = None
    dividend_yield: float | None = None
    market_status: MarketStatus = MarketStatus.UNKNOWN
    quote_timestamp: datetime | None = None

    model_config = {
        "from_attributes": True,
    }
