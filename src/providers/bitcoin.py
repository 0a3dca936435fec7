# /src/providers/bitcoin.py
import asyncio
import time
from typing import Callable, List, Optional

from src.adapters.fee_estimates import FetchError, Prediction
from src.core.config import FeeRateConfig
from src.core.fee_rate import SmoothingWindow
from src.core.logger import get_logger, FEE_FETCHES, WINDOW_SIZE
from src.providers.base import FeeRateProvider

log = get_logger(__name__)

MIN_FEE_RATE = 10 # satoshi/byte
MAX_FEE_RATE = 1000


class BitcoinFeeRateProvider(FeeRateProvider):
    """
    Smoothed BTC fee rate: the fee of the first upstream prediction that
    confirms within `max_blocks`, averaged over the last `capacity` accepted
    predictions and clamped to [MIN_FEE_RATE, MAX_FEE_RATE].

    Upstream failures and "no matching prediction" publish MIN_FEE_RATE and
    leave the window untouched. The floor is used rather than the last good
    value.
    """
    currency = "BTC"
    floor_rate = MIN_FEE_RATE

    def __init__(self, adapter, config: FeeRateConfig = FeeRateConfig(),
                 fetch_timeout: float = 10.0, clock: Callable[[], float] = time.time):
        super().__init__(config.ttl, clock=clock)
        self.adapter = adapter
        self.config = config
        self.fetch_timeout = fetch_timeout
        self.window = SmoothingWindow(config.capacity)
        log.info("BITCOIN_FEE_RATE_PROVIDER_INITIALIZED", params=self.params())

    def params(self) -> str:
        ttl_ms = int(self.ttl.total_seconds() * 1000)
        return f"{self.config.capacity};{self.config.max_blocks};{ttl_ms}"

    async def _fetch(self) -> List[Prediction]:
        try:
            predictions = await asyncio.wait_for(self.adapter.fetch_predictions(), timeout=self.fetch_timeout)
        except FetchError as e:
            FEE_FETCHES.labels("error").inc()
            log.error("FEE_FETCH_FAILED", error=str(e), error_type=type(e).__name__)
            return []
        except asyncio.TimeoutError:
            FEE_FETCHES.labels("timeout").inc()
            log.error("FEE_FETCH_TIMED_OUT", timeout=self.fetch_timeout)
            return []
        FEE_FETCHES.labels("ok").inc()
        return predictions

    def select(self, predictions: List[Prediction]) -> Optional[Prediction]:
        # First match in the provider's own order, not the cheapest or fastest.
        for prediction in predictions:
            if prediction.max_delay_blocks <= self.config.max_blocks:
                return prediction
        return None

    async def compute_rate(self) -> int:
        selected = self.select(await self._fetch())
        if selected is None:
            log.warning("NO_MATCHING_FEE_PREDICTION", max_blocks=self.config.max_blocks, fallback=MIN_FEE_RATE)
            return MIN_FEE_RATE

        log.info("FEE_RATE_PREDICTION_SELECTED", fee_rate=selected.fee_rate, max_delay=selected.max_delay_blocks)
        self.window.push(selected.fee_rate)
        WINDOW_SIZE.labels(self.currency).set(len(self.window))
        average = self.window.average()
        log.info("FEE_RATE_AVERAGED", window_size=len(self.window), average=average)
        return min(max(average, MIN_FEE_RATE), MAX_FEE_RATE)
