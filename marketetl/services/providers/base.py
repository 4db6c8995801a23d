"""Shared plumbing for provider adapters.

Adapters perform exactly one HTTP request per ``fetch`` and never retry
or sleep; pacing is the caller's job (see ``marketetl.core.pacer``).
Every transport, HTTP, parse, or sentinel problem is turned into a
``Failure`` with a ``FailureReason`` so callers only branch on the union.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from marketetl.core.exceptions import (
    MalformedResponseError,
    ProviderError,
    RateLimitedError,
    TransportError,
)
from marketetl.core.logging import get_logger
from marketetl.domain.results import Failure, ProviderResult, Success


logger = get_logger("services.providers")

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def as_float(value: Any) -> float | None:
    """Coerce a provider number; ``None``, blank, non-numeric, NaN and infinity become ``None``."""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class BaseAdapter(ABC, Generic[PayloadT]):
    """One provider endpoint returning a normalized payload."""

    provider_id: str = ""
    name: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str,
        timeout: float = 30.0,
    ):
        self._client = client
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch(self, symbol: str) -> ProviderResult[PayloadT]:
        """Fetch and normalize ``symbol``; never raises for provider problems."""
        symbol = symbol.upper()
        try:
            payload = await self._fetch(symbol)
        except ProviderError as e:
            logger.warning(f"[{self.name}] {symbol}: {e.reason.value} ({e.message})")
            return Failure.from_error(e)
        logger.debug(f"[{self.name}] {symbol}: ok")
        return Success(payload=payload, provider=self.provider_id)

    @abstractmethod
    async def _fetch(self, symbol: str) -> PayloadT:
        """Provider-specific request and parsing; raises ``ProviderError``."""

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise TransportError(self.provider_id, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(self.provider_id, f"{type(e).__name__}: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError(self.provider_id, "HTTP 429 rate limit exceeded")
        if response.status_code >= 400:
            raise TransportError(self.provider_id, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(self.provider_id, "response is not JSON") from e

    def _validate(self, model: type[PayloadT], data: dict[str, Any]) -> PayloadT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                self.provider_id, f"{model.__name__} failed validation: {e.error_count()} errors"
            ) from e

    def _require_numeric(self, data: dict[str, Any], keys: tuple[str, ...]) -> None:
        """Present, non-null values under ``keys`` must be finite numbers."""
        for key in keys:
            if data.get(key) is not None and as_float(data[key]) is None:
                raise MalformedResponseError(self.provider_id, f"non-numeric '{key}'")

    def _epoch_to_datetime(self, value: Any, per_second: int = 1) -> datetime | None:
        """Epoch ``value`` (``per_second`` units per second) as UTC; zero/absent is ``None``."""
        ticks = as_float(value)
        if not ticks:
            return None
        try:
            return datetime.fromtimestamp(ticks / per_second, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedResponseError(self.provider_id, f"timestamp out of range: {value!r}") from e

    def _expect_mapping(self, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            raise MalformedResponseError(
                self.provider_id, f"expected JSON object, got {type(data).__name__}"
            )
        return data
