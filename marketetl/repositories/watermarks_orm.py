"""Daily watermark repository using SQLAlchemy ORM.

Each instrument carries a ``daily_watermark`` date: the last day its data
was confirmed refreshed. An instrument is pending for ``today`` when the
watermark is NULL or earlier than ``today``. The watermark only moves
forward; the one exception is ``reset_all`` (queue start).

All functions take the caller's session and never commit; the caller owns
the transaction boundary.

Usage:
    from marketetl.repositories import watermarks_orm as watermarks

    async with database.session() as session:
        symbols = await watermarks.list_pending(session, today, limit=70)
        ...
        await watermarks.mark_done(session, "AAPL", today)
        await session.commit()
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from marketetl.core.logging import get_logger
from marketetl.database.orm import Instrument


logger = get_logger("repositories.watermarks_orm")


def _pending_clause(today: date) -> ColumnElement[bool]:
    return or_(
        Instrument.daily_watermark.is_(None),
        Instrument.daily_watermark < today,
    )


async def reset_all(session: AsyncSession) -> int:
    """Clear every watermark, making all instruments pending.

    Returns:
        Number of instruments in the store
    """
    await session.execute(update(Instrument).values(daily_watermark=None))
    result = await session.execute(select(func.count()).select_from(Instrument))
    total = result.scalar() or 0
    logger.info(f"Reset watermarks for {total} instruments")
    return total


async def is_pending(session: AsyncSession, symbol: str, today: date) -> bool:
    """True if ``symbol`` has not been refreshed for ``today``.

    Unknown symbols are not pending.
    """
    result = await session.execute(
        select(func.count())
        .select_from(Instrument)
        .where(Instrument.symbol == symbol.upper(), _pending_clause(today))
    )
    return (result.scalar() or 0) > 0


async def list_pending(session: AsyncSession, today: date, limit: int) -> list[str]:
    """Up to ``limit`` pending symbols in ascending symbol order."""
    if limit <= 0:
        return []
    result = await session.execute(
        select(Instrument.symbol)
        .where(_pending_clause(today))
        .order_by(Instrument.symbol)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_pending(session: AsyncSession, today: date) -> int:
    """Number of instruments still pending for ``today``."""
    result = await session.execute(
        select(func.count()).select_from(Instrument).where(_pending_clause(today))
    )
    return result.scalar() or 0


async def count_done(session: AsyncSession, today: date) -> int:
    """Number of instruments whose watermark is ``today``."""
    result = await session.execute(
        select(func.count())
        .select_from(Instrument)
        .where(Instrument.daily_watermark == today)
    )
    return result.scalar() or 0


async def mark_done(session: AsyncSession, symbol: str, today: date) -> bool:
    """Advance the watermark of ``symbol`` to ``today``.

    Idempotent, and never moves a watermark backwards.

    Returns:
        True if the row changed
    """
    result = await session.execute(
        update(Instrument)
        .where(Instrument.symbol == symbol.upper(), _pending_clause(today))
        .values(daily_watermark=today)
    )
    return result.rowcount > 0


async def force_complete_all_pending(session: AsyncSession, today: date) -> int:
    """Set the watermark to ``today`` on every pending instrument.

    Touches no other column; used to freeze the queue at the end of the
    processing window.

    Returns:
        Number of instruments forced to complete
    """
    result = await session.execute(
        update(Instrument)
        .where(_pending_clause(today))
        .values(daily_watermark=today)
    )
    count = result.rowcount or 0
    logger.info(f"Force-completed {count} pending instruments for {today}")
    return count


async def last_refresh(session: AsyncSession, today: date) -> datetime | None:
    """Latest ``last_updated`` among instruments done for ``today``."""
    result = await session.execute(
        select(func.max(Instrument.last_updated)).where(
            Instrument.daily_watermark == today
        )
    )
    return result.scalar()
