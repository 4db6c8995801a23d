"""Database module: async SQLAlchemy handle and ORM models."""

from .connection import (
    Database,
    close_database,
    get_async_database_url,
    get_database,
    init_database,
)
from .orm import (
    TAG_KIND_CURATED,
    TAG_KIND_DERIVED,
    Base,
    Instrument,
    InstrumentTag,
    Tag,
)


__all__ = [
    "Database",
    "init_database",
    "get_database",
    "close_database",
    "get_async_database_url",
    "Base",
    "Instrument",
    "InstrumentTag",
    "Tag",
    "TAG_KIND_CURATED",
    "TAG_KIND_DERIVED",
]
