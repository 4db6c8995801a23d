"""Provider call results as a tagged union.

Usage:
    result = await adapter.fetch("AAPL")
    if isinstance(result, Success):
        quote = result.payload
    else:
        logger.warning(f"{result.reason.value}: {result.detail}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from marketetl.core.exceptions import FailureReason, ProviderError


T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """A normalized provider payload."""

    payload: T
    provider: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A typed provider failure."""

    reason: FailureReason
    detail: str = ""
    provider: str = ""

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, error: ProviderError) -> "Failure":
        return cls(reason=error.reason, detail=error.message, provider=error.provider)


ProviderResult = Union[Success[T], Failure]
