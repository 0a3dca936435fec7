# /src/adapters/mock.py
# Test/simulation implementation of the fee estimate adapter.

import asyncio
from collections import deque
from typing import Iterable, List, Tuple

from src.adapters.fee_estimates import FetchError, Prediction
from src.core.logger import get_logger

log = get_logger(__name__)


class MockFeeEstimateAdapter:
    """
    Replays scripted prediction sets instead of calling an upstream service.
    Each call consumes the next queued set; an exhausted queue yields no predictions.
    """
    def __init__(self, delay: float = 0):
        self.delay = delay
        self.call_count = 0
        self._responses: deque[List[Prediction]] = deque()
        self._must_fail = False
        self._error: Exception | None = None
        log.info("MOCK_FEE_ESTIMATE_ADAPTER_INITIALIZED")

    def queue(self, *predictions: Tuple[int, int]):
        """Queue one prediction set given as (max_delay_blocks, fee_rate) pairs."""
        self._responses.append([
            Prediction(max_delay_blocks=delay, fee_rate=fee) for delay, fee in predictions
        ])

    def queue_rates(self, rates: Iterable[int], max_delay_blocks: int = 1):
        """Queue one single-prediction set per rate."""
        for rate in rates:
            self.queue((max_delay_blocks, rate))

    def set_next_call_to_fail(self, fail: bool = True, error: Exception | None = None):
        """Configure the mock to raise `error` (FetchError by default) on the next call."""
        self._must_fail = fail
        self._error = error

    async def fetch_predictions(self) -> List[Prediction]:
        self.call_count += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)

        if self._must_fail:
            self._must_fail = False # Reset after firing
            log.error("MOCK_FETCH_FORCED_FAILURE")
            raise self._error or FetchError("Forced failure for testing.")

        predictions = self._responses.popleft() if self._responses else []
        log.info("MOCK_PREDICTIONS_SERVED", count=len(predictions))
        return predictions
