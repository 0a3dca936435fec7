# /src/core/logger.py
import logging
import structlog
import sentry_sdk
from prometheus_client import Counter, Gauge
from src.core.config import settings

# --- Prometheus Metrics ---
FEE_FETCHES = Counter("fee_rate_fetches_total", "Upstream fee estimate fetches", ["outcome"])
FEE_REFRESHES = Counter("fee_rate_refreshes_total", "Fee rate recomputations after TTL expiry", ["currency"])
CURRENT_FEE_RATE = Gauge("fee_rate_current", "Last published fee rate", ["currency"])
WINDOW_SIZE = Gauge("fee_rate_window_size", "Entries in the fee rate smoothing window", ["currency"])


def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN, traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

configure_logging()
log = get_logger("FeeRate.System")
