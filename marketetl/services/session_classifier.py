"""Trading-session classification from a quote timestamp.

Pure functions; no I/O. The exchange's local time of the quote decides the
session, except that a quote older than the staleness window always means
the market is closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from marketetl.core.config import Settings, settings as default_settings
from marketetl.domain.market import MarketStatus


@dataclass(frozen=True)
class SessionWindows:
    """Session boundaries in exchange local time. Each window is ``[start, end)``."""

    tz: ZoneInfo
    premarket_open: time = time(4, 0)
    regular_open: time = time(9, 30)
    regular_close: time = time(16, 0)
    postmarket_close: time = time(20, 0)
    stale_after: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SessionWindows":
        settings = settings or default_settings
        return cls(
            tz=ZoneInfo(settings.exchange_timezone),
            premarket_open=settings.premarket_open,
            regular_open=settings.regular_open,
            regular_close=settings.regular_close,
            postmarket_close=settings.postmarket_close,
            stale_after=timedelta(hours=settings.stale_quote_hours),
        )


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def exchange_date(now: datetime, tz: ZoneInfo) -> date:
    """Calendar date at the exchange; the watermark's notion of "today"."""
    return _as_utc(now).astimezone(tz).date()


def classify(
    quote_timestamp: datetime | None,
    now: datetime,
    windows: SessionWindows | None = None,
) -> MarketStatus:
    """
    Classify the session a quote was taken in.

    Args:
        quote_timestamp: When the quote was observed (None if unknown)
        now: Current time
        windows: Session boundaries (defaults from settings)

    Returns:
        MarketStatus
    """
    if quote_timestamp is None:
        return MarketStatus.UNKNOWN

    windows = windows or SessionWindows.from_settings()
    quote_at = _as_utc(quote_timestamp)

    if _as_utc(now) - quote_at > windows.stale_after:
        return MarketStatus.CLOSED

    local = quote_at.astimezone(windows.tz).time()
    if windows.regular_open <= local < windows.regular_close:
        return MarketStatus.OPEN
    if windows.premarket_open <= local < windows.regular_open:
        return MarketStatus.PRE_MARKET
    if windows.regular_close <= local < windows.postmarket_close:
        return MarketStatus.POST_MARKET
    return MarketStatus.CLOSED
