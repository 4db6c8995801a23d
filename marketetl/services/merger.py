"""Merge one cycle's provider payloads into an instrument record.

Every writable field has exactly one owning provider, so providers never
compete for a value. Fields nobody supplied this cycle keep their
persisted value; ``None`` from a provider means "not supplied".

Usage:
    result = merge_record(snapshot, quote=quote, aggregate=bar, fundamentals=metrics)
    await instruments_orm.apply_update(session, row, result.updates, result.market_status, now)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from marketetl.domain.market import (
    AggregatePayload,
    FundamentalsPayload,
    InstrumentSnapshot,
    MarketStatus,
    QuotePayload,
)
from marketetl.services.session_classifier import SessionWindows, classify


QUOTE = "quote"
AGGREGATES = "aggregates"
FUNDAMENTALS = "fundamentals"

# record field -> (owning source, payload attribute)
FIELD_OWNERS: dict[str, tuple[str, str | None]] = {
    "last_price": (QUOTE, "last_price"),
    "open_price": (QUOTE, "open_price"),
    "high_price": (QUOTE, "high_price"),
    "low_price": (QUOTE, "low_price"),
    "previous_close": (QUOTE, "previous_close"),
    "change_amount": (QUOTE, "change_amount"),
    "change_percent": (QUOTE, "change_percent"),
    "quote_timestamp": (QUOTE, "timestamp"),
    "volume": (AGGREGATES, "volume"),
    "vwap": (AGGREGATES, "vwap"),
    "trade_count": (AGGREGATES, "trade_count"),
    # No provider reports turnover; it is always derived
    "turnover": (AGGREGATES, None),
    "market_cap": (FUNDAMENTALS, "market_cap"),
    "pe_ttm": (FUNDAMENTALS, "pe_ttm"),
    "roe_ttm": (FUNDAMENTALS, "roe_ttm"),
    "pb_ratio": (FUNDAMENTALS, "pb_ratio"),
    "debt_to_equity": (FUNDAMENTALS, "debt_to_equity"),
    "current_ratio": (FUNDAMENTALS, "current_ratio"),
    "dividend_yield": (FUNDAMENTALS, "dividend_yield"),
}


PAYLOAD_MODELS = {
    QUOTE: QuotePayload,
    AGGREGATES: AggregatePayload,
    FUNDAMENTALS: FundamentalsPayload,
}


def check_field_owners(owners: dict[str, tuple[str, str | None]]) -> None:
    """Every owned field must be a record column fed by a real payload attribute.

    Raises:
        ValueError: on an unknown source, record field or payload attribute
    """
    for name, (source, attr) in owners.items():
        if name not in InstrumentSnapshot.model_fields:
            raise ValueError(f"{name!r} is not an instrument field")
        model = PAYLOAD_MODELS.get(source)
        if model is None:
            raise ValueError(f"{name!r} owned by unknown source {source!r}")
        if attr is not None and attr not in model.model_fields:
            raise ValueError(f"{model.__name__} has no attribute {attr!r} for {name!r}")


check_field_owners(FIELD_OWNERS)


@dataclass
class MergeResult:
    """Merged record plus the subset of fields that changed this cycle."""

    record: InstrumentSnapshot
    updates: dict[str, Any] = field(default_factory=dict)
    market_status: MarketStatus = MarketStatus.UNKNOWN


def _supplied(source: str, payload: Any) -> dict[str, Any]:
    if payload is None:
        return {}
    values = {}
    for name, (owner, attr) in FIELD_OWNERS.items():
        if owner != source or attr is None:
            continue
        value = getattr(payload, attr)
        if value is not None:
            values[name] = value
    return values


def merge_record(
    current: InstrumentSnapshot,
    quote: QuotePayload | None = None,
    aggregate: AggregatePayload | None = None,
    fundamentals: FundamentalsPayload | None = None,
    now: datetime | None = None,
    windows: SessionWindows | None = None,
) -> MergeResult:
    """
    Merge provider payloads onto ``current``.

    Args:
        current: Persisted state of the instrument
        quote: Quote payload supplied this cycle, if any
        aggregate: Aggregate bar supplied this cycle, if any
        fundamentals: Fundamentals supplied this cycle, if any
        now: Reference time for session classification
        windows: Session boundaries

    Returns:
        MergeResult with the full merged record and the changed fields
    """
    now = now or datetime.now(timezone.utc)

    supplied: dict[str, Any] = {}
    supplied.update(_supplied(QUOTE, quote))
    supplied.update(_supplied(AGGREGATES, aggregate))
    supplied.update(_supplied(FUNDAMENTALS, fundamentals))

    merged = current.model_dump()
    merged.update(supplied)

    # Derived change from previous close
    if quote is not None and "change_amount" not in supplied:
        last = merged.get("last_price")
        prev = merged.get("previous_close")
        if last is not None and prev:
            supplied["change_amount"] = last - prev
            if "change_percent" not in supplied:
                supplied["change_percent"] = (last - prev) / prev * 100
    elif quote is not None and "change_percent" not in supplied:
        prev = merged.get("previous_close")
        if prev:
            supplied["change_percent"] = supplied["change_amount"] / prev * 100

    merged.update(supplied)

    # Derived turnover
    if "turnover" not in supplied and ("volume" in supplied or "last_price" in supplied):
        volume = merged.get("volume")
        last = merged.get("last_price")
        if volume is not None and last is not None:
            supplied["turnover"] = volume * last
            merged["turnover"] = supplied["turnover"]

    market_status = classify(quote.timestamp if quote else None, now, windows)
    merged["market_status"] = market_status

    record = InstrumentSnapshot.model_validate(merged)
    updates = {
        name: value
        for name, value in supplied.items()
        if getattr(current, name) != value
    }
    return MergeResult(record=record, updates=updates, market_status=market_status)
