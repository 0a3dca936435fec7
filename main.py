# /main.py
# Serves the smoothed fee rate over HTTP.
# Usage: python main.py [capacity] [maxBlocks] [ttlMinutes]
import asyncio
import sys

import uvicorn

from src.core.config import settings, FeeRateConfig
from src.core.config_validator import validate as validate_config
from src.core.logger import configure_logging, get_logger
from src.core.api import create_app
from src.adapters.fee_estimates import FeeEstimateAdapter
from src.providers.bitcoin import BitcoinFeeRateProvider

async def main(args: list[str]):
    configure_logging()
    log = get_logger("FeeRate.System")
    try:
        config = FeeRateConfig.from_args(args)
    except ValueError as e:
        log.critical("INVALID_FEE_RATE_ARGUMENTS", args=args, error=str(e))
        sys.exit(1)
    validate_config()
    log.info("FEE_RATE_SERVICE_STARTING", capacity=config.capacity, max_blocks=config.max_blocks,
             ttl_minutes=config.ttl_minutes)

    adapter = FeeEstimateAdapter(
        settings.FEE_ESTIMATE_URL,
        settings.FEE_ESTIMATE_USER_AGENT,
        timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
    )
    provider = BitcoinFeeRateProvider(adapter, config, fetch_timeout=settings.HTTP_TIMEOUT_SECONDS)
    app = create_app(provider, background_refresh=settings.BACKGROUND_REFRESH)

    server = uvicorn.Server(uvicorn.Config(
        app=app,
        host=settings.HTTP_HOST,
        port=settings.HTTP_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,
    ))
    log.info(f"HTTP_SERVER_STARTING on {settings.HTTP_HOST}:{settings.HTTP_PORT}")
    await server.serve()
    log.warning("SYSTEM_SHUTDOWN_COMPLETE")

if __name__ == "__main__":
    try:
        asyncio.run(main(sys.argv[1:]))
    except KeyboardInterrupt:
        pass
