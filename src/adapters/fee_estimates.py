# /src/adapters/fee_estimates.py
# Fetches fee/confirmation-delay predictions from an upstream estimation service.
import asyncio
from typing import Any, Dict, List

import aiohttp
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.core.logger import get_logger

log = get_logger(__name__)


class FetchError(Exception):
    """Raised when the upstream service cannot be reached or answers with an error."""


class ParseError(FetchError):
    """Raised when the upstream payload does not have the expected shape."""


class Prediction(BaseModel):
    """
    One upstream estimate: to confirm within `max_delay_blocks` blocks,
    pay at least `fee_rate`.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    max_delay_blocks: int = Field(
        ge=0, strict=True,
        validation_alias=AliasChoices("max_delay_blocks", "maxDelayBlocks", "maxDelay"),
    )
    fee_rate: int = Field(
        ge=0, strict=True,
        validation_alias=AliasChoices("fee_rate", "feeRate", "maxFee"),
    )


# category name -> records, e.g. {"fees": [{"minFee": 0, "maxFee": 0, "maxDelay": 32, ...}, ...]}
_PAYLOAD = TypeAdapter(Dict[str, List[Prediction]])


def parse_predictions(payload: Any) -> List[Prediction]:
    """
    Flattens every category of the payload into one list, keeping the
    provider's order. Nothing is sorted or filtered here.
    """
    try:
        categories = _PAYLOAD.validate_python(payload)
    except ValidationError as e:
        raise ParseError(f"Unexpected fee estimate payload: {e.error_count()} error(s)") from e
    return [p for records in categories.values() for p in records]


class FeeEstimateAdapter:
    """
    Stateless client of the upstream fee estimation endpoint. One GET per
    call, no retries: the caller's refresh interval is the retry policy.
    """
    def __init__(self, url: str, user_agent: str, timeout_seconds: float = 10.0):
        if not user_agent:
            raise ValueError("An explicit, non-empty User-Agent is required by upstream hosts")
        self.url = url
        self.user_agent = user_agent
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        log.info("FEE_ESTIMATE_ADAPTER_INITIALIZED", url=url)

    async def fetch_predictions(self) -> List[Prediction]:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout, headers=headers) as session:
                async with session.get(self.url) as response:
                    response.raise_for_status()
                    payload = await response.json(content_type=None)
        except aiohttp.ClientResponseError as e:
            raise FetchError(f"Fee estimate request failed with HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Fee estimate request failed: {e!r}") from e
        except (ValueError, RecursionError) as e:
            raise ParseError("Fee estimate response is not valid JSON") from e

        predictions = parse_predictions(payload)
        log.debug("FEE_PREDICTIONS_FETCHED", count=len(predictions))
        return predictions
