# /test/test_fee_rate_provider.py
# - Tests the TTL-gated cache, selection, smoothing and clamping of BitcoinFeeRateProvider.
# - Utilizes the mock adapter so no upstream service is needed.

import asyncio
import pytest

from src.core.config import FeeRateConfig
from src.core.fee_rate import SmoothingWindow
from src.core.logger import FEE_FETCHES
from src.adapters.mock import MockFeeEstimateAdapter
from src.providers.bitcoin import BitcoinFeeRateProvider, MIN_FEE_RATE, MAX_FEE_RATE

TTL_SECONDS = 5 * 60


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def advance(self, seconds: float):
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def adapter():
    return MockFeeEstimateAdapter()


def make_provider(adapter, clock, **config):
    return BitcoinFeeRateProvider(adapter, FeeRateConfig(**config), fetch_timeout=1.0, clock=clock)


async def read_after_expiry(provider, clock) -> int:
    clock.advance(TTL_SECONDS)
    return await provider.get_current_rate()


# --- Test Cases ---

@pytest.mark.asyncio
async def test_first_read_triggers_refresh(adapter, clock):
    adapter.queue((1, 42))
    provider = make_provider(adapter, clock)
    assert provider.cached is None

    fee_rate = await provider.get()

    assert adapter.call_count == 1
    assert fee_rate.currency == "BTC"
    assert fee_rate.rate == 42
    assert fee_rate.timestamp == int(clock.now)


@pytest.mark.asyncio
async def test_first_matching_prediction_wins(adapter, clock):
    """
    GIVEN predictions [(2, 50), (6, 20)] and max_blocks=4
    WHEN the provider refreshes
    THEN it should select 50, the first match, not the cheaper 20.
    """
    adapter.queue((2, 50), (6, 20))
    provider = make_provider(adapter, clock, max_blocks=4)

    assert await provider.get_current_rate() == 50
    assert provider.window.values() == [50]


@pytest.mark.asyncio
async def test_selection_keeps_upstream_order(adapter, clock):
    adapter.queue((12, 5), (8, 300), (1, 900))
    provider = make_provider(adapter, clock, max_blocks=10)

    assert await provider.get_current_rate() == 300


@pytest.mark.asyncio
async def test_no_match_publishes_floor_without_touching_window(adapter, clock):
    adapter.queue((1, 120))
    adapter.queue((20, 80), (30, 40))
    provider = make_provider(adapter, clock, max_blocks=10)
    assert await provider.get_current_rate() == 120

    assert await read_after_expiry(provider, clock) == MIN_FEE_RATE
    assert provider.window.values() == [120]


@pytest.mark.asyncio
async def test_window_evicts_oldest_value(adapter, clock):
    """
    GIVEN capacity=2 and accepted fee rates 100, 200, 300
    THEN the window after the third refresh is [200, 300] and the published average is 250.
    """
    adapter.queue_rates([100, 200, 300])
    provider = make_provider(adapter, clock, capacity=2)

    assert await provider.get_current_rate() == 100
    assert await read_after_expiry(provider, clock) == 150
    assert await read_after_expiry(provider, clock) == 250
    assert provider.window.values() == [200, 300]


@pytest.mark.asyncio
async def test_window_never_exceeds_capacity(adapter, clock):
    rates = [11, 22, 33, 44, 55, 66]
    adapter.queue_rates(rates)
    provider = make_provider(adapter, clock, capacity=4)

    await provider.get()
    for _ in rates[1:]:
        await read_after_expiry(provider, clock)
        assert len(provider.window) <= 4

    assert provider.window.values() == [33, 44, 55, 66]


@pytest.mark.asyncio
async def test_average_is_truncated(adapter, clock):
    adapter.queue_rates([10, 15])
    provider = make_provider(adapter, clock)

    await provider.get()
    assert await read_after_expiry(provider, clock) == 12


@pytest.mark.asyncio
async def test_fresh_read_returns_cached_value_without_fetching(adapter, clock):
    adapter.queue_rates([70, 500])
    provider = make_provider(adapter, clock)

    first = await provider.get()
    clock.advance(TTL_SECONDS - 1)
    second = await provider.get()

    assert second is first
    assert adapter.call_count == 1


@pytest.mark.asyncio
async def test_read_at_exact_ttl_refreshes(adapter, clock):
    adapter.queue_rates([70, 500])
    provider = make_provider(adapter, clock)

    await provider.get()
    assert await read_after_expiry(provider, clock) == (70 + 500) // 2
    assert adapter.call_count == 2


@pytest.mark.asyncio
async def test_clamps_after_averaging(adapter, clock):
    """Raw values 1 and 30 average to 15; clamping first would have given 20."""
    adapter.queue_rates([1, 30])
    provider = make_provider(adapter, clock, capacity=2)

    assert await provider.get_current_rate() == MIN_FEE_RATE
    assert await read_after_expiry(provider, clock) == 15
    assert provider.window.values() == [1, 30]


@pytest.mark.asyncio
async def test_clamps_to_max(adapter, clock):
    adapter.queue_rates([5000])
    provider = make_provider(adapter, clock)

    assert await provider.get_current_rate() == MAX_FEE_RATE
    assert provider.window.values() == [5000]


@pytest.mark.asyncio
async def test_rate_always_within_bounds(adapter, clock):
    rates = [0, 3, 9999, 250, 0, 100000, 12]
    adapter.queue_rates(rates)
    provider = make_provider(adapter, clock, capacity=3)

    observed = [await provider.get_current_rate()]
    for _ in rates[1:]:
        observed.append(await read_after_expiry(provider, clock))

    assert all(MIN_FEE_RATE <= rate <= MAX_FEE_RATE for rate in observed)


@pytest.mark.asyncio
async def test_fetch_failure_degrades_to_floor_and_resets_ttl(adapter, clock):
    adapter.queue_rates([200, 300])
    provider = make_provider(adapter, clock)
    await provider.get()
    failures = FEE_FETCHES.labels("error")
    initial = failures._value.get()

    adapter.set_next_call_to_fail()
    assert await read_after_expiry(provider, clock) == MIN_FEE_RATE
    assert provider.window.values() == [200]
    assert failures._value.get() == initial + 1

    # The failed refresh still counts as a computation: no new fetch until the TTL expires again.
    clock.advance(TTL_SECONDS - 1)
    assert await provider.get_current_rate() == MIN_FEE_RATE
    assert adapter.call_count == 2

    assert await read_after_expiry(provider, clock) == 250


@pytest.mark.asyncio
async def test_hung_upstream_is_bounded_by_timeout(clock):
    adapter = MockFeeEstimateAdapter(delay=5)
    adapter.queue_rates([400])
    provider = BitcoinFeeRateProvider(adapter, FeeRateConfig(), fetch_timeout=0.05, clock=clock)

    assert await provider.get_current_rate() == MIN_FEE_RATE
    assert len(provider.window) == 0


@pytest.mark.asyncio
async def test_concurrent_readers_share_one_refresh(clock):
    adapter = MockFeeEstimateAdapter(delay=0.05)
    adapter.queue_rates([80, 90])
    provider = make_provider(adapter, clock)

    results = await asyncio.gather(*(provider.get() for _ in range(10)))

    assert adapter.call_count == 1
    assert {r.rate for r in results} == {80}
    assert provider.window.values() == [80]


def test_params_and_refresh_hint(adapter, clock):
    provider = make_provider(adapter, clock, capacity=4, max_blocks=10, ttl_minutes=5)

    assert provider.params() == "4;10;300000"
    assert provider.refresh_interval_hint() == provider.ttl
    assert provider.ttl.total_seconds() == TTL_SECONDS


def test_smoothing_window_fifo():
    window = SmoothingWindow(3)
    for value in (1, 2, 3, 4):
        window.push(value)

    assert window.values() == [2, 3, 4]
    assert window.average() == 3


def test_smoothing_window_rejects_bad_capacity():
    with pytest.raises(ValueError):
        SmoothingWindow(0)


@pytest.mark.asyncio
async def test_unexpected_adapter_error_degrades_to_floor(adapter, clock):
    adapter.queue_rates([200, 300])
    provider = make_provider(adapter, clock)
    await provider.get()

    adapter.set_next_call_to_fail(error=RuntimeError("adapter bug"))
    assert await read_after_expiry(provider, clock) == MIN_FEE_RATE
    assert provider.window.values() == [200]

    clock.advance(TTL_SECONDS - 1)
    assert await provider.get_current_rate() == MIN_FEE_RATE
    assert adapter.call_count == 2
