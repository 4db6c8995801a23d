"""Pytest configuration and fixtures."""

from __future__ import annotations

import gc
import warnings
from collections.abc import Sequence
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import event, update

from marketetl.core.exceptions import FailureReason
from marketetl.database.connection import Database
from marketetl.database.orm import Instrument
from marketetl.domain.market import AggregatePayload, FundamentalsPayload, QuotePayload
from marketetl.domain.results import Failure, Success
from marketetl.repositories import instruments_orm


# Tuesday 2026-03-10 11:00 in New York (EDT)
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)
YESTERDAY = date(2026, 3, 9)


def _force_cleanup():
    """Force cleanup of pending async resources."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ResourceWarning)
        gc.collect()


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


def enable_sqlite_savepoints(database: Database) -> None:
    """Let pysqlite emit BEGIN itself so SAVEPOINT works inside transactions."""
    engine = database.engine.sync_engine

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """A file-backed SQLite record store with the schema created."""
    db = Database(sqlite_url(tmp_path / "marketetl.db"))
    await db.connect()
    enable_sqlite_savepoints(db)
    await db.create_schema()
    yield db
    await db.close()
    _force_cleanup()


async def seed_instruments(
    database: Database,
    symbols: Sequence[str],
    watermark: date | None = None,
    **fields: Any,
) -> None:
    """Insert instruments with an optional watermark and column values."""
    async with database.session() as session:
        await instruments_orm.add_instruments(session, symbols)
        values = {"daily_watermark": watermark, **fields}
        await session.execute(
            update(Instrument)
            .where(Instrument.symbol.in_([s.upper() for s in symbols]))
            .values(**values)
        )
        await session.commit()


def symbols(count: int, prefix: str = "S") -> list[str]:
    """``count`` distinct symbols that sort in creation order."""
    return [f"{prefix}{i:04d}" for i in range(count)]


# =============================================================================
# Fake provider adapters
# =============================================================================

QUOTE = QuotePayload(
    last_price=100.0,
    open_price=96.0,
    high_price=101.0,
    low_price=95.5,
    previous_close=95.0,
    timestamp=datetime(2026, 3, 10, 14, 30, tzinfo=timezone.utc),
)
AGGREGATE = AggregatePayload(
    open=94.0, high=96.0, low=93.0, close=95.0, volume=1000.0, vwap=95.2, trade_count=42
)
FUNDAMENTALS = FundamentalsPayload(
    market_cap=250e9,
    pe_ttm=10.0,
    roe_ttm=25.0,
    pb_ratio=3.0,
    debt_to_equity=0.3,
    current_ratio=2.5,
    dividend_yield=0.01,
)


class FakeAdapter:
    """Returns a fixed payload, or a failure for selected symbols."""

    def __init__(
        self,
        provider_id: str,
        payload: Any,
        failures: dict[str, FailureReason] | None = None,
    ):
        self.provider_id = provider_id
        self.payload = payload
        self.failures = failures or {}
        self.calls: list[str] = []

    async def fetch(self, symbol: str):
        self.calls.append(symbol)
        if symbol in self.failures:
            return Failure(reason=self.failures[symbol], detail="fake", provider=self.provider_id)
        return Success(payload=self.payload, provider=self.provider_id)


@pytest.fixture
def fake_adapters() -> list[FakeAdapter]:
    return [
        FakeAdapter("finnhub", QUOTE),
        FakeAdapter("polygon", AGGREGATE),
        FakeAdapter("finnhub", FUNDAMENTALS),
    ]


# =============================================================================
# API
# =============================================================================

CRON_SECRET = "test-cron-secret"


@pytest.fixture
def cron_secret(monkeypatch) -> str:
    from marketetl.core.config import settings

    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    return CRON_SECRET


@pytest.fixture
def auth_headers(cron_secret: str) -> dict:
    return {"Authorization": f"Bearer {cron_secret}"}


@pytest.fixture
def app(tmp_path: Path):
    from marketetl.api.app import create_api_app

    return create_api_app(database=Database(sqlite_url(tmp_path / "api.db")))


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    _force_cleanup()
