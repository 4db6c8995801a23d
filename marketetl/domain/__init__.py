"""Domain models for strongly-typed data throughout the pipeline.

Usage:
    from marketetl.domain import QuotePayload, Success, Failure

    result: ProviderResult[QuotePayload] = await quote_adapter.fetch("AAPL")
"""

from marketetl.domain.market import (
    FUNDAMENTAL_FIELDS,
    PRICING_FIELDS,
    AggregatePayload,
    FundamentalsPayload,
    InstrumentSnapshot,
    MarketStatus,
    QuotePayload,
)
from marketetl.domain.results import (
    Failure,
    ProviderResult,
    Success,
)

__all__ = [
    # Market
    "AggregatePayload",
    "FundamentalsPayload",
    "FUNDAMENTAL_FIELDS",
    "InstrumentSnapshot",
    "MarketStatus",
    "PRICING_FIELDS",
    "QuotePayload",
    # Results
    "Failure",
    "ProviderResult",
    "Success",
]
