"""Data access layer repositories.

Every function takes the caller's ``AsyncSession``; none of them commit.

- instruments_orm: instrument records and ETL-owned columns
- tags_orm: derived/curated tags and their associations
- watermarks_orm: per-instrument daily completion markers
"""

from . import instruments_orm
from . import tags_orm
from . import watermarks_orm

__all__ = [
    "instruments_orm",
    "tags_orm",
    "watermarks_orm",
]
