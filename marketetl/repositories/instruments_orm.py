"""Instrument record repository using SQLAlchemy ORM."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketetl.core.logging import get_logger
from marketetl.database.orm import Instrument
from marketetl.domain.market import (
    FUNDAMENTAL_FIELDS,
    PRICING_FIELDS,
    InstrumentSnapshot,
    MarketStatus,
)


logger = get_logger("repositories.instruments_orm")

# Columns the ETL is allowed to write; curated classification is excluded
WRITABLE_FIELDS = frozenset(PRICING_FIELDS + FUNDAMENTAL_FIELDS + ("quote_timestamp",))


async def get_instrument(session: AsyncSession, symbol: str) -> Instrument | None:
    """Get an instrument by symbol."""
    return await session.get(Instrument, symbol.upper())


async def get_snapshot(session: AsyncSession, symbol: str) -> InstrumentSnapshot | None:
    """Load the merger's view of an instrument."""
    instrument = await get_instrument(session, symbol)
    if instrument is None:
        return None
    return to_snapshot(instrument)


def to_snapshot(instrument: Instrument) -> InstrumentSnapshot:
    """Convert an ORM row to an ``InstrumentSnapshot``."""
    data = {field: getattr(instrument, field) for field in WRITABLE_FIELDS}
    data["symbol"] = instrument.symbol
    try:
        data["market_status"] = MarketStatus(instrument.market_status)
    except ValueError:
        data["market_status"] = MarketStatus.UNKNOWN
    return InstrumentSnapshot.model_validate(data)


async def apply_update(
    session: AsyncSession,
    instrument: Instrument,
    updates: Mapping[str, Any],
    market_status: MarketStatus,
    updated_at: datetime,
) -> Instrument:
    """Write merged fields onto ``instrument`` and flush.

    Raises:
        ValueError: if ``updates`` names a column the ETL does not own
    """
    unknown = set(updates) - WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Refusing to write non-ETL columns: {sorted(unknown)}")

    for field, value in updates.items():
        setattr(instrument, field, value)
    instrument.market_status = market_status.value
    instrument.last_updated = updated_at

    await session.flush()
    return instrument


async def add_instruments(session: AsyncSession, symbols: Sequence[str]) -> int:
    """Insert bare instrument rows for symbols not yet in the store.

    Onboarding proper is out of scope; this exists for seeding and tests.
    """
    wanted = {s.upper() for s in symbols}
    if not wanted:
        return 0
    result = await session.execute(
        select(Instrument.symbol).where(Instrument.symbol.in_(wanted))
    )
    existing = set(result.scalars().all())
    for symbol in sorted(wanted - existing):
        session.add(Instrument(symbol=symbol))
    await session.flush()
    return len(wanted - existing)


async def count_instruments(session: AsyncSession) -> int:
    """Count all instruments."""
    result = await session.execute(select(func.count()).select_from(Instrument))
    return result.scalar() or 0
