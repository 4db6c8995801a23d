"""Per-provider call spacing for external API calls."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from marketetl.core.logging import get_logger


if TYPE_CHECKING:
    from marketetl.core.config import Settings

logger = get_logger("core.pacer")

FINNHUB = "finnhub"
POLYGON = "polygon"


class Pacer:
    """
    Enforces a minimum delay between successive calls to the same provider.

    The interval is measured from the moment the previous call *returned*,
    so a slow response does not eat into the next call's spacing. Each
    provider has its own lock and its own clock reading; providers never
    wait on each other.

    Usage:
        pacer = Pacer({"finnhub": 1.0, "polygon": 0.2})

        async with pacer.turn("finnhub"):
            response = await client.get(...)
    """

    def __init__(
        self,
        min_intervals: Mapping[str, float],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize pacer.

        Args:
            min_intervals: Seconds of spacing per provider id
            clock: Monotonic clock (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        self.min_intervals = dict(min_intervals)
        self._clock = clock
        self._sleep = sleep
        self._last_returned: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, provider_id: str) -> asyncio.Lock:
        if provider_id not in self._locks:
            self._locks[provider_id] = asyncio.Lock()
        return self._locks[provider_id]

    def delay_for(self, provider_id: str) -> float:
        """Seconds the next call to ``provider_id`` would have to wait."""
        interval = self.min_intervals.get(provider_id, 0.0)
        last = self._last_returned.get(provider_id)
        if interval <= 0 or last is None:
            return 0.0
        return max(0.0, interval - (self._clock() - last))

    async def wait_turn(self, provider_id: str) -> float:
        """
        Block until ``provider_id`` may be called again.

        Returns:
            Seconds actually waited
        """
        wait_time = self.delay_for(provider_id)
        if wait_time > 0:
            logger.debug(f"Pacer {provider_id} waiting {wait_time:.2f}s")
            await self._sleep(wait_time)
        return wait_time

    def mark_returned(self, provider_id: str) -> None:
        """Record that a call to ``provider_id`` just returned."""
        self._last_returned[provider_id] = self._clock()

    @asynccontextmanager
    async def turn(self, provider_id: str) -> AsyncIterator[None]:
        """Hold the provider's slot for one call, then stamp its return time."""
        async with self._lock_for(provider_id):
            await self.wait_turn(provider_id)
            try:
                yield
            finally:
                self.mark_returned(provider_id)

    def status(self) -> dict:
        """Get current pacer status."""
        return {
            provider: {
                "min_interval": interval,
                "next_delay": round(self.delay_for(provider), 3),
            }
            for provider, interval in self.min_intervals.items()
        }


def build_pacer(settings: Settings) -> Pacer:
    """Create a pacer with the configured provider intervals."""
    pacer = Pacer(
        {
            FINNHUB: settings.finnhub_min_interval,
            POLYGON: settings.polygon_min_interval,
        }
    )
    logger.info(
        f"Created pacer: {FINNHUB}={settings.finnhub_min_interval}s, "
        f"{POLYGON}={settings.polygon_min_interval}s"
    )
    return pacer
