"""Start and stop of the daily refresh queue.

Both operations only move watermarks; neither calls a provider.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from marketetl.core.config import Settings, settings as default_settings
from marketetl.core.logging import get_logger
from marketetl.database.connection import Database
from marketetl.repositories import watermarks_orm
from marketetl.services.session_classifier import exchange_date, utc_now


logger = get_logger("services.queue_control")


@dataclass
class StartSummary:
    reset_count: int
    total_pending: int
    estimated_minutes: int
    exchange_time: datetime
    skipped: bool = False
    reason: str | None = None


@dataclass
class StopSummary:
    force_completed: int
    already_done: int
    total: int
    last_processed_at: datetime | None
    exchange_time: datetime


class QueueController:
    """Opens (``start``) and freezes (``stop``) the day's refresh queue."""

    def __init__(
        self,
        database: Database,
        batch_size: int = 70,
        batch_interval_minutes: int = 15,
        skip_non_trading_days: bool = False,
        now_fn: Callable[[], datetime] = utc_now,
        timezone: ZoneInfo | None = None,
    ):
        self.database = database
        self.batch_size = batch_size
        self.batch_interval_minutes = batch_interval_minutes
        self.skip_non_trading_days = skip_non_trading_days
        self.now_fn = now_fn
        self.timezone = timezone or ZoneInfo(default_settings.exchange_timezone)

    @classmethod
    def from_settings(cls, database: Database, settings: Settings | None = None) -> "QueueController":
        settings = settings or default_settings
        return cls(
            database,
            batch_size=settings.etl_batch_size,
            batch_interval_minutes=settings.etl_batch_interval_minutes,
            skip_non_trading_days=settings.etl_skip_non_trading_days,
            timezone=ZoneInfo(settings.exchange_timezone),
        )

    def estimate_minutes(self, pending: int) -> int:
        """Minutes until the queue drains at one batch per scheduler interval."""
        return math.ceil(pending / self.batch_size) * self.batch_interval_minutes

    async def start(self) -> StartSummary:
        """Mark every instrument pending for a new cycle."""
        exchange_time = self.now_fn().astimezone(self.timezone)

        if self.skip_non_trading_days and exchange_time.weekday() >= 5:
            logger.info(f"Skipping queue start on {exchange_time:%A}")
            return StartSummary(
                reset_count=0,
                total_pending=0,
                estimated_minutes=0,
                exchange_time=exchange_time,
                skipped=True,
                reason="Weekend - markets closed",
            )

        async with self.database.session() as session:
            reset_count = await watermarks_orm.reset_all(session)
            await session.commit()
            total_pending = await watermarks_orm.count_pending(session, exchange_time.date())

        estimated = self.estimate_minutes(total_pending)
        logger.info(
            f"Queue started: {total_pending} pending, ~{estimated} minutes "
            f"at {self.batch_size} per {self.batch_interval_minutes}min"
        )
        return StartSummary(
            reset_count=reset_count,
            total_pending=total_pending,
            estimated_minutes=estimated,
            exchange_time=exchange_time,
        )

    async def stop(self) -> StopSummary:
        """Force every still-pending instrument to done for today."""
        now = self.now_fn()
        exchange_time = now.astimezone(self.timezone)
        today = exchange_date(now, self.timezone)

        async with self.database.session() as session:
            already_done = await watermarks_orm.count_done(session, today)
            force_completed = await watermarks_orm.force_complete_all_pending(session, today)
            await session.commit()
            last_processed_at = await watermarks_orm.last_refresh(session, today)

        logger.info(
            f"Queue stopped: {force_completed} force-completed, {already_done} already done"
        )
        return StopSummary(
            force_completed=force_completed,
            already_done=already_done,
            total=force_completed + already_done,
            last_processed_at=last_processed_at,
            exchange_time=exchange_time,
        )
