"""SQLAlchemy ORM models for the market-data record store.

Usage:
    from marketetl.database.orm import Instrument

    async with database.session() as session:
        instrument = await session.get(Instrument, "AAPL")
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


# Naming convention for constraints and indexes (deterministic names for migrations)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

TAG_KIND_CURATED = "curated"
TAG_KIND_DERIVED = "derived"


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# INSTRUMENTS
# =============================================================================


class Instrument(Base):
    """One tradable symbol and its latest merged market snapshot."""
    __tablename__ = "instruments"

    symbol: Mapped[str] = mapped_column(String(20), primary_key=True)
    # Curated classification (maintained by onboarding, never touched by the ETL)
    name: Mapped[str | None] = mapped_column(String(255))
    name_local: Mapped[str | None] = mapped_column(String(255))
    sector: Mapped[str | None] = mapped_column(String(100))
    industry: Mapped[str | None] = mapped_column(String(150))
    # Pricing snapshot
    last_price: Mapped[float | None] = mapped_column(Float)
    open_price: Mapped[float | None] = mapped_column(Float)
    high_price: Mapped[float | None] = mapped_column(Float)
    low_price: Mapped[float | None] = mapped_column(Float)
    previous_close: Mapped[float | None] = mapped_column(Float)
    change_amount: Mapped[float | None] = mapped_column(Float)
    change_percent: Mapped[float | None] = mapped_column(Float)
    volume: Mapped[float | None] = mapped_column(Float)
    turnover: Mapped[float | None] = mapped_column(Float)
    vwap: Mapped[float | None] = mapped_column(Float)
    trade_count: Mapped[int | None] = mapped_column(BigInteger)
    # Fundamentals snapshot
    market_cap: Mapped[float | None] = mapped_column(Float)
    pe_ttm: Mapped[float | None] = mapped_column(Float)
    roe_ttm: Mapped[float | None] = mapped_column(Float)
    pb_ratio: Mapped[float | None] = mapped_column(Float)
    debt_to_equity: Mapped[float | None] = mapped_column(Float)
    current_ratio: Mapped[float | None] = mapped_column(Float)
    dividend_yield: Mapped[float | None] = mapped_column(Float)
    # Session state
    market_status: Mapped[str] = mapped_column(String(20), default="Unknown", server_default="Unknown")
    quote_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Queue state: last day this instrument's refresh was confirmed
    daily_watermark: Mapped[date | None] = mapped_column(Date)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    tag_links: Mapped[list[InstrumentTag]] = relationship(
        back_populates="instrument", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "market_status IN ('Unknown', 'Closed', 'Open', 'PreMarket', 'PostMarket')",
            name="market_status",
        ),
        Index("idx_instruments_watermark", "daily_watermark", "symbol"),
        Index("idx_instruments_sector", "sector"),
    )


# =============================================================================
# TAGS
# =============================================================================


class Tag(Base):
    """A named category. ``derived`` tags belong to the tag engine."""
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default=TAG_KIND_CURATED)
    category: Mapped[str | None] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    instrument_links: Mapped[list[InstrumentTag]] = relationship(
        back_populates="tag", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("kind IN ('curated', 'derived')", name="kind"),
        Index("idx_tags_kind", "kind"),
    )


class InstrumentTag(Base):
    """Many-to-many association between instruments and tags."""
    __tablename__ = "instrument_tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(
        String(20), ForeignKey("instruments.symbol", ondelete="CASCADE"), nullable=False
    )
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    instrument: Mapped[Instrument] = relationship(back_populates="tag_links")
    tag: Mapped[Tag] = relationship(back_populates="instrument_links")

    __table_args__ = (
        UniqueConstraint("symbol", "tag_id", name="uq_instrument_tags_symbol_tag"),
        Index("idx_instrument_tags_tag", "tag_id"),
    )
