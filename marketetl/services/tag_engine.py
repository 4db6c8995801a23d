"""Derived tag rules and recomputation.

Each rule reads one field of the merged record and yields at most one
tag. Rules are independent and evaluated in a fixed order. Recompute
replaces every ``derived`` association of an instrument inside a single
savepoint; curated associations are never touched.
"""

from __future__ import annotations

import operator
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from marketetl.core.logging import get_logger
from marketetl.database.orm import TAG_KIND_CURATED
from marketetl.domain.market import InstrumentSnapshot
from marketetl.repositories import tags_orm


logger = get_logger("services.tag_engine")


@dataclass(frozen=True)
class Threshold:
    """``value <op> bound`` -> ``tag``."""

    op: Callable[[float, float], bool]
    bound: float
    tag: str


@dataclass(frozen=True)
class TagRule:
    """One bucket group: the first matching threshold wins."""

    category: str
    field: str
    thresholds: tuple[Threshold, ...]
    fallback: str | None = None
    guard: Callable[[float], bool] | None = None

    def evaluate(self, record: InstrumentSnapshot) -> str | None:
        value = getattr(record, self.field)
        if value is None:
            return None
        if self.guard is not None and not self.guard(value):
            return None
        for threshold in self.thresholds:
            if threshold.op(value, threshold.bound):
                return threshold.tag
        return self.fallback


@dataclass(frozen=True)
class DerivedTag:
    name: str
    category: str


_gt, _ge, _lt = operator.gt, operator.ge, operator.lt

DERIVED_TAG_RULES: tuple[TagRule, ...] = (
    TagRule(
        category="market_cap",
        field="market_cap",
        thresholds=(
            Threshold(_ge, 200e9, "Mega Cap"),
            Threshold(_ge, 10e9, "Large Cap"),
            Threshold(_ge, 2e9, "Mid Cap"),
        ),
        fallback="Small Cap",
        guard=lambda v: v > 0,
    ),
    TagRule(
        category="valuation",
        field="pe_ttm",
        thresholds=(
            Threshold(_lt, 15, "Low Valuation"),
            Threshold(_gt, 30, "High Valuation"),
        ),
        # Negative earnings make PE meaningless
        guard=lambda v: v > 0,
    ),
    TagRule(
        category="profitability",
        field="roe_ttm",
        thresholds=(
            Threshold(_gt, 20, "High ROE"),
            Threshold(_lt, 5, "Low ROE"),
        ),
    ),
    TagRule(
        category="leverage",
        field="debt_to_equity",
        thresholds=(
            Threshold(_gt, 2, "High Leverage"),
            Threshold(_lt, 0.5, "Low Leverage"),
        ),
    ),
    TagRule(
        category="liquidity",
        field="current_ratio",
        thresholds=(
            Threshold(_gt, 2, "Strong Liquidity"),
            Threshold(_lt, 1, "Weak Liquidity"),
        ),
    ),
    TagRule(
        category="performance",
        field="change_percent",
        thresholds=(
            Threshold(_gt, 5, "Strong Performer"),
            Threshold(_lt, -5, "Weak Performer"),
        ),
    ),
)


def evaluate_rules(record: InstrumentSnapshot) -> list[DerivedTag]:
    """Derived tags for ``record``, in rule order."""
    tags = []
    for rule in DERIVED_TAG_RULES:
        name = rule.evaluate(record)
        if name is not None:
            tags.append(DerivedTag(name=name, category=rule.category))
    return tags


async def recompute(
    session: AsyncSession,
    symbol: str,
    record: InstrumentSnapshot,
) -> list[str]:
    """
    Replace the derived tags of ``symbol`` with those ``record`` earns.

    Delete and insert share one savepoint, so a failure leaves the previous
    derived set in place.

    Returns:
        Names of the derived tags now linked
    """
    wanted = evaluate_rules(record)
    linked: list[str] = []

    async with session.begin_nested():
        await tags_orm.delete_derived_links(session, symbol)

        existing = await tags_orm.get_tags_by_name(session, [t.name for t in wanted])
        tags = []
        for derived in wanted:
            tag = existing.get(derived.name)
            if tag is not None and tag.kind == TAG_KIND_CURATED:
                logger.warning(
                    f"Derived tag '{derived.name}' collides with a curated tag; skipping for {symbol}"
                )
                continue
            if tag is None:
                tag = await tags_orm.ensure_derived_tag(session, derived.name, derived.category)
            tags.append(tag)
            linked.append(derived.name)

        await tags_orm.link_tags(session, symbol, tags)

    logger.debug(f"{symbol}: derived tags {linked}")
    return linked


async def list_tags(session: AsyncSession, symbol: str) -> list[tuple[str, str]]:
    """(name, kind) pairs currently linked to ``symbol``."""
    return await tags_orm.list_instrument_tags(session, symbol)
