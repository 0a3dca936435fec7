# /src/providers/base.py
# Defines the FeeRateProvider interface and its TTL-gated cache.

import asyncio
import time
from datetime import timedelta
from typing import Callable

from src.core.fee_rate import FeeRate
from src.core.logger import get_logger, FEE_REFRESHES, CURRENT_FEE_RATE

log = get_logger(__name__)


class FeeRateProvider:
    """
    The interface every currency-specific fee rate provider implements.

    The provider owns one cached FeeRate. A read while the cache is older than
    `ttl` (or empty) recomputes it via `compute_rate()`; any other read returns
    the cached value without touching the upstream service. Check, recompute
    and publish happen under a single lock, so concurrent readers cause at
    most one recomputation per expiry and never see a partial update.
    """
    currency: str = ""
    # Published when compute_rate() raises; still resets the TTL clock.
    floor_rate: int = 0

    def __init__(self, ttl: timedelta, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock
        self._cached: FeeRate | None = None
        self._refreshed_at: float | None = None
        self._lock = asyncio.Lock()

    def refresh_interval_hint(self) -> timedelta:
        """How often a background refresher should poll this provider."""
        return self.ttl

    async def compute_rate(self) -> int:
        """Produce a new fee rate. Any exception degrades the refresh to `floor_rate`."""
        raise NotImplementedError

    def is_stale(self) -> bool:
        if self._refreshed_at is None:
            return True
        return self.clock() - self._refreshed_at >= self.ttl.total_seconds()

    @property
    def cached(self) -> FeeRate | None:
        return self._cached

    async def get(self) -> FeeRate:
        async with self._lock:
            if self.is_stale():
                try:
                    rate = await self.compute_rate()
                except Exception as e:
                    log.error("FEE_RATE_COMPUTE_FAILED", currency=self.currency, error=str(e),
                              fallback=self.floor_rate, exc_info=True)
                    rate = self.floor_rate
                now = self.clock()
                self._cached = FeeRate(currency=self.currency, rate=rate, timestamp=int(now))
                self._refreshed_at = now
                FEE_REFRESHES.labels(self.currency).inc()
                CURRENT_FEE_RATE.labels(self.currency).set(rate)
                log.info("FEE_RATE_PUBLISHED", currency=self.currency, rate=rate, timestamp=int(now))
            return self._cached

    async def get_current_rate(self) -> int:
        return (await self.get()).rate

    async def run_loop(self):
        """Keeps the cache warm by reading it every refresh interval."""
        interval = self.refresh_interval_hint().total_seconds()
        log.info("FEE_RATE_REFRESH_LOOP_STARTING", currency=self.currency, interval=interval)
        while True:
            try:
                await self.get()
            except Exception as e:
                log.error("FEE_RATE_REFRESH_LOOP_ERROR", currency=self.currency, error=str(e), exc_info=True)
            await asyncio.sleep(interval)
