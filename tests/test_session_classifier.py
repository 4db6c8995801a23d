"""Tests for trading-session classification."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from marketetl.core.config import Settings
from marketetl.domain.market import MarketStatus
from marketetl.services.session_classifier import SessionWindows, classify, exchange_date


NY = ZoneInfo("America/New_York")
WINDOWS = SessionWindows(tz=NY)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestClassify:
    """2026-03-10 is EDT (UTC-4)."""

    def test_missing_timestamp_is_unknown(self):
        assert classify(None, utc(2026, 3, 10, 15), WINDOWS) == MarketStatus.UNKNOWN

    @pytest.mark.parametrize(
        "quote_at, expected",
        [
            (utc(2026, 3, 10, 14, 30), MarketStatus.OPEN),         # 10:30
            (utc(2026, 3, 10, 13, 30), MarketStatus.OPEN),         # 09:30 open bell
            (utc(2026, 3, 10, 13, 29), MarketStatus.PRE_MARKET),   # 09:29
            (utc(2026, 3, 10, 8, 0), MarketStatus.PRE_MARKET),     # 04:00
            (utc(2026, 3, 10, 7, 59), MarketStatus.CLOSED),        # 03:59
            (utc(2026, 3, 10, 20, 0), MarketStatus.POST_MARKET),   # 16:00 close
            (utc(2026, 3, 10, 23, 59), MarketStatus.POST_MARKET),  # 19:59
            (utc(2026, 3, 11, 0, 0), MarketStatus.CLOSED),         # 20:00
        ],
    )
    def test_local_time_of_quote(self, quote_at, expected):
        now = quote_at + timedelta(minutes=5)
        assert classify(quote_at, now, WINDOWS) == expected

    def test_stale_quote_is_closed_regardless_of_hour(self):
        quote_at = utc(2026, 3, 10, 14, 30)
        now = quote_at + timedelta(hours=24, seconds=1)
        assert classify(quote_at, now, WINDOWS) == MarketStatus.CLOSED

    def test_exactly_stale_window_is_not_stale(self):
        quote_at = utc(2026, 3, 10, 14, 30)
        now = quote_at + timedelta(hours=24)
        assert classify(quote_at, now, WINDOWS) == MarketStatus.OPEN

    def test_standard_time_shifts_utc_boundaries(self):
        # 2026-01-13 is EST (UTC-5)
        assert classify(utc(2026, 1, 13, 14, 30), utc(2026, 1, 13, 15), WINDOWS) == MarketStatus.OPEN
        assert classify(utc(2026, 1, 13, 14, 29), utc(2026, 1, 13, 15), WINDOWS) == MarketStatus.PRE_MARKET

    def test_naive_timestamps_are_utc(self):
        quote_at = datetime(2026, 3, 10, 14, 30)
        now = datetime(2026, 3, 10, 15, 0)
        assert classify(quote_at, now, WINDOWS) == MarketStatus.OPEN

    def test_custom_windows(self):
        windows = SessionWindows(
            tz=timezone.utc,
            premarket_open=time(1, 0),
            regular_open=time(2, 0),
            regular_close=time(3, 0),
            postmarket_close=time(4, 0),
            stale_after=timedelta(hours=1),
        )
        assert classify(utc(2026, 3, 10, 2, 30), utc(2026, 3, 10, 2, 45), windows) == MarketStatus.OPEN
        assert classify(utc(2026, 3, 10, 2, 30), utc(2026, 3, 10, 4, 0), windows) == MarketStatus.CLOSED


class TestSessionWindows:
    def test_from_settings(self):
        settings = Settings(_env_file=None, exchange_timezone="Asia/Hong_Kong", stale_quote_hours=6)
        windows = SessionWindows.from_settings(settings)
        assert windows.tz == ZoneInfo("Asia/Hong_Kong")
        assert windows.stale_after == timedelta(hours=6)
        assert windows.regular_open == time(9, 30)


class TestExchangeDate:
    def test_uses_exchange_calendar_day(self):
        # 02:00 UTC on the 11th is still the 10th in New York
        assert exchange_date(utc(2026, 3, 11, 2, 0), NY) == date(2026, 3, 10)
        assert exchange_date(utc(2026, 3, 11, 5, 0), NY) == date(2026, 3, 11)
