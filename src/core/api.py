# /src/core/api.py
import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import make_asgi_app

from src.core.fee_rate import FeeRate
from src.core.logger import get_logger
from src.providers.bitcoin import BitcoinFeeRateProvider

log = get_logger(__name__)


def create_app(provider: BitcoinFeeRateProvider, background_refresh: bool = False) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(provider.run_loop()) if background_refresh else None
        yield
        if task:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
            log.info("FEE_RATE_REFRESH_LOOP_STOPPED")

    app = FastAPI(lifespan=lifespan)
    app.mount("/metrics", make_asgi_app())

    @app.get("/getFees", response_model=FeeRate)
    async def get_fees():
        return await provider.get()

    @app.get("/getParams", response_class=PlainTextResponse)
    async def get_params():
        return provider.params()

    @app.get("/healthz")
    async def healthz():
        cached = provider.cached
        return {"status": "ok", "last_refresh": cached.timestamp if cached else None}

    return app
