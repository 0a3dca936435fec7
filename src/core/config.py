# /src/core/config.py
import re
from datetime import timedelta
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_CAPACITY = 4  # requested every 5 min, so the average covers the last 20 min
DEFAULT_MAX_BLOCKS = 10
DEFAULT_TTL_MINUTES = 5

# Optionally signed ASCII digits only
_INTEGER_ARG = re.compile(r"[+-]?[0-9]+")


class Settings(BaseSettings):
    # Upstream fee estimation service
    FEE_ESTIMATE_URL: str = "https://bitcoinfees.earn.com/api/v1/fees/list"
    # Some upstream hosts answer 403 to requests without a user agent
    FEE_ESTIMATE_USER_AGENT: str = "fee-rate-service/0.1"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Operational Settings
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8080
    BACKGROUND_REFRESH: bool = True
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


class FeeRateConfig(BaseModel):
    """
    Smoothing and caching parameters of a fee rate stream.
    Read from the process' positional arguments: [capacity] [maxBlocks] [ttlMinutes].
    """
    model_config = ConfigDict(frozen=True)

    capacity: int = Field(DEFAULT_CAPACITY, gt=0)
    max_blocks: int = Field(DEFAULT_MAX_BLOCKS, ge=0)
    ttl_minutes: int = Field(DEFAULT_TTL_MINUTES, gt=0)

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=self.ttl_minutes)

    @classmethod
    def from_args(cls, args: Sequence[str]) -> "FeeRateConfig":
        """
        Builds the config from positional arguments. Missing arguments take
        their default; a non-numeric one raises ValueError instead of being
        defaulted.
        """
        names = ("capacity", "max_blocks", "ttl_minutes")
        values = {}
        for name, raw in zip(names, args):
            if not _INTEGER_ARG.fullmatch(raw):
                raise ValueError(f"Invalid {name} argument: {raw!r} is not an integer")
            values[name] = int(raw)
        return cls(**values)


try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from src.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("FeeRate.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    # In a container, a hard exit is often appropriate if config fails.
    exit(1)
