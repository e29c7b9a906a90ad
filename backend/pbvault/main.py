# pbvault/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from pbvault.api import pastes
from pbvault.config import get_settings
from pbvault.core.errors import ConnectionFailure, PasteError
from pbvault.core.rate_limit import RateLimit
from pbvault.infra.database import PasteStore
from pbvault.services.captcha import RecaptchaVerifier
from pbvault.services.paste_service import PasteService
from pbvault.utils.logger import setup_logger

logger = logging.getLogger(__name__)


async def sweep_expired(store: PasteStore, interval: int):
    """Periodically remove pastes past their expiry."""
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(store.purge_expired)
        except PasteError as exc:
            logger.error("Expired paste sweep failed: %s", exc)


def create_app(settings=None, store: PasteStore = None, captcha=None, clock=None) -> FastAPI:
    settings = settings or get_settings()
    rate_limit = RateLimit(settings.rate_limit, enabled=settings.rate_limit_enable)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logger(settings.log_level)
        paste_store = store or PasteStore.from_settings(settings)
        try:
            paste_store.connect()
        except ConnectionFailure:
            # No degraded mode: the process must not start without its store
            logger.critical("Cannot connect to DB, refusing to start")
            raise

        app.state.store = paste_store
        app.state.service = PasteService(paste_store, settings, clock=clock)
        app.state.captcha = captcha or RecaptchaVerifier(settings.recaptcha_secret)

        sweeper = None
        if settings.sweep_interval > 0:
            sweeper = asyncio.create_task(sweep_expired(paste_store, settings.sweep_interval))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
            paste_store.close()

    app = FastAPI(
        title="pb-vault",
        version="1.0.0",
        description="Self-destructing encrypted paste service",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.rate_limit = rate_limit

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    # Register routers; catch-all paste route last
    app.include_router(pastes.router, tags=["Pastes"])
    return app


app = create_app()
