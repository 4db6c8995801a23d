"""Tag repository using SQLAlchemy ORM.

Only ``derived`` associations are ever deleted here. Curated tags and
their associations are owned by an external process.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketetl.core.logging import get_logger
from marketetl.database.orm import (
    TAG_KIND_CURATED,
    TAG_KIND_DERIVED,
    InstrumentTag,
    Tag,
)


logger = get_logger("repositories.tags_orm")


async def get_tags_by_name(session: AsyncSession, names: Iterable[str]) -> dict[str, Tag]:
    """Map tag name -> Tag for the given names."""
    names = list(names)
    if not names:
        return {}
    result = await session.execute(select(Tag).where(Tag.name.in_(names)))
    return {tag.name: tag for tag in result.scalars().all()}


async def ensure_derived_tag(
    session: AsyncSession,
    name: str,
    category: str,
    description: str | None = None,
) -> Tag:
    """Get or create a tag row for a derived category."""
    result = await session.execute(select(Tag).where(Tag.name == name))
    tag = result.scalar_one_or_none()
    if tag is None:
        tag = Tag(name=name, kind=TAG_KIND_DERIVED, category=category, description=description)
        session.add(tag)
        await session.flush()
        logger.debug(f"Created derived tag '{name}' ({category})")
    return tag


async def create_curated_tag(session: AsyncSession, name: str, description: str | None = None) -> Tag:
    """Create a curated tag (seeding and tests; curation itself is external)."""
    tag = Tag(name=name, kind=TAG_KIND_CURATED, description=description)
    session.add(tag)
    await session.flush()
    return tag


async def delete_derived_links(session: AsyncSession, symbol: str) -> int:
    """Remove every derived-tag association for ``symbol``."""
    derived_ids = select(Tag.id).where(Tag.kind == TAG_KIND_DERIVED)
    result = await session.execute(
        delete(InstrumentTag)
        .where(InstrumentTag.symbol == symbol, InstrumentTag.tag_id.in_(derived_ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def link_tags(session: AsyncSession, symbol: str, tags: Sequence[Tag]) -> None:
    """Associate ``symbol`` with each of ``tags``."""
    for tag in tags:
        session.add(InstrumentTag(symbol=symbol, tag_id=tag.id))
    await session.flush()


async def list_instrument_tags(session: AsyncSession, symbol: str) -> list[tuple[str, str]]:
    """(name, kind) pairs for ``symbol``, ordered by name."""
    result = await session.execute(
        select(Tag.name, Tag.kind)
        .join(InstrumentTag, InstrumentTag.tag_id == Tag.id)
        .where(InstrumentTag.symbol == symbol)
        .order_by(Tag.name)
    )
    return [(name, kind) for name, kind in result.all()]


async def link_curated_tag(session: AsyncSession, symbol: str, tag: Tag) -> None:
    """Associate a curated tag (seeding and tests)."""
    if tag.kind != TAG_KIND_CURATED:
        raise ValueError(f"Tag '{tag.name}' is not curated")
    session.add(InstrumentTag(symbol=symbol, tag_id=tag.id))
    await session.flush()
