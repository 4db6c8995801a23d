"""Bounded batch processing of the daily refresh queue.

One ``run_batch`` call takes up to ``batch_size`` pending instruments (in
symbol order) and refreshes them one at a time: fetch each provider
through the pacer, merge, persist, recompute derived tags, advance the
watermark. An instrument that fails anywhere stays pending and the loop
moves on. The session commits every ``checkpoint_interval`` instruments,
so a crash loses at most one checkpoint's worth of work.

Only one batch may run against a given day at a time; nothing claims
instruments, so two concurrent batches could both pick the same symbol.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketetl.core.config import Settings, settings as default_settings
from marketetl.core.exceptions import PersistenceError
from marketetl.core.logging import get_logger
from marketetl.core.pacer import Pacer, build_pacer
from marketetl.database.connection import Database
from marketetl.domain.market import (
    AggregatePayload,
    FundamentalsPayload,
    MarketStatus,
    QuotePayload,
)
from marketetl.domain.results import Failure
from marketetl.repositories import instruments_orm, watermarks_orm
from marketetl.services import tag_engine
from marketetl.services.merger import merge_record
from marketetl.services.providers import BaseAdapter, build_adapters
from marketetl.services.session_classifier import SessionWindows, exchange_date, utc_now


logger = get_logger("services.batch_processor")


@dataclass
class InstrumentResult:
    """Outcome for one instrument in a batch."""

    symbol: str
    ok: bool
    reason: str | None = None
    detail: str | None = None
    market_status: MarketStatus | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Counts for one ``run_batch`` call."""

    processed: int = 0
    errors: int = 0
    remaining: int = 0
    results: list[InstrumentResult] = field(default_factory=list)


class BatchProcessor:
    """Refreshes pending instruments in bounded, checkpointed batches."""

    def __init__(
        self,
        database: Database,
        adapters: Sequence[BaseAdapter],
        pacer: Pacer,
        checkpoint_interval: int = 50,
        now_fn: Callable[[], datetime] = utc_now,
        windows: SessionWindows | None = None,
        timezone: ZoneInfo | None = None,
    ):
        if checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be >= 1")
        self.database = database
        self.adapters = list(adapters)
        self.pacer = pacer
        self.checkpoint_interval = checkpoint_interval
        self.now_fn = now_fn
        self.windows = windows or SessionWindows.from_settings()
        self.timezone = timezone or self.windows.tz

    async def run_batch(self, batch_size: int) -> BatchResult:
        """
        Process up to ``batch_size`` pending instruments.

        Returns:
            BatchResult with processed/errors counts and what is still pending
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        today = exchange_date(self.now_fn(), self.timezone)
        batch = BatchResult()
        started = time.monotonic()

        async with self.database.session() as session:
            pending = await watermarks_orm.list_pending(session, today, batch_size)
            if not pending:
                logger.info(f"No pending instruments for {today}")
                return batch

            logger.info(f"Processing {len(pending)} instruments for {today}")

            for index, symbol in enumerate(pending, start=1):
                outcome = await self._process_instrument(session, symbol, today)
                batch.results.append(outcome)
                if outcome.ok:
                    batch.processed += 1
                else:
                    batch.errors += 1

                if index % self.checkpoint_interval == 0 and index < len(pending):
                    await session.commit()
                    logger.info(
                        f"Checkpoint: {index}/{len(pending)} "
                        f"(processed={batch.processed}, errors={batch.errors})"
                    )

            await session.commit()
            batch.remaining = await watermarks_orm.count_pending(session, today)

        logger.info(
            f"Batch done in {time.monotonic() - started:.1f}s: processed={batch.processed}, "
            f"errors={batch.errors}, remaining={batch.remaining}"
        )
        return batch

    async def _fetch_all(self, symbol: str) -> dict[type, Any] | Failure:
        """Call every adapter in order; the first failure stops the rest."""
        payloads: dict[type, Any] = {}
        for adapter in self.adapters:
            async with self.pacer.turn(adapter.provider_id):
                result = await adapter.fetch(symbol)
            if isinstance(result, Failure):
                return result
            payloads[type(result.payload)] = result.payload
        return payloads

    async def _process_instrument(
        self,
        session: AsyncSession,
        symbol: str,
        today: date,
    ) -> InstrumentResult:
        fetched = await self._fetch_all(symbol)
        if isinstance(fetched, Failure):
            return InstrumentResult(
                symbol=symbol,
                ok=False,
                reason=fetched.reason.value,
                detail=f"{fetched.provider}: {fetched.detail}",
            )

        now = self.now_fn()
        try:
            async with session.begin_nested():
                instrument = await instruments_orm.get_instrument(session, symbol)
                if instrument is None:
                    raise PersistenceError(symbol, "instrument no longer exists")

                merged = merge_record(
                    instruments_orm.to_snapshot(instrument),
                    quote=fetched.get(QuotePayload),
                    aggregate=fetched.get(AggregatePayload),
                    fundamentals=fetched.get(FundamentalsPayload),
                    now=now,
                    windows=self.windows,
                )
                await instruments_orm.apply_update(
                    session, instrument, merged.updates, merged.market_status, now
                )
                tags = await tag_engine.recompute(session, symbol, merged.record)
                await watermarks_orm.mark_done(session, symbol, today)
        except PersistenceError as e:
            logger.error(f"{symbol}: {e.message}")
            return InstrumentResult(symbol=symbol, ok=False, reason="persistence_error", detail=e.message)
        except SQLAlchemyError as e:
            logger.error(f"{symbol}: write failed: {type(e).__name__}: {e}")
            return InstrumentResult(
                symbol=symbol,
                ok=False,
                reason="persistence_error",
                detail=f"{type(e).__name__}",
            )

        return InstrumentResult(
            symbol=symbol,
            ok=True,
            market_status=merged.market_status,
            tags=tags,
        )


def build_batch_processor(
    database: Database,
    client: httpx.AsyncClient,
    settings: Settings | None = None,
) -> BatchProcessor:
    """Wire a processor from settings.

    Raises:
        ConfigurationError: if provider credentials are missing
    """
    settings = settings or default_settings
    windows = SessionWindows.from_settings(settings)
    return BatchProcessor(
        database=database,
        adapters=build_adapters(settings, client),
        pacer=build_pacer(settings),
        checkpoint_interval=settings.etl_checkpoint_interval,
        windows=windows,
        timezone=windows.tz,
    )
