"""
Codex API
FastAPI application entry point

- Read access to the codex collection (/codex)
- Health check with store ping (/health)
- Job status and manual triggers (/jobs)
- Reconciliation scheduler started in the lifespan hook when enabled
- Optional seed run after startup (SEED_ON_STARTUP)
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codex_api.adapters.base import StoreBundle
from codex_api.adapters.factory import build_stores
from codex_api.api.routes import codex, health, jobs
from codex_api.core.config import Settings, settings as default_settings
from codex_api.core.exceptions import CodexBaseError
from codex_api.jobs.scheduler import CodexScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the scheduler on startup; stop it and close the stores on shutdown."""
    app_settings: Settings = app.state.settings
    scheduler: CodexScheduler = app.state.scheduler

    if app_settings.SCHEDULER_ENABLED:
        await scheduler.start()
        logger.info("Codex scheduler ENABLED - jobs will run automatically")
    else:
        logger.info("Codex scheduler DISABLED via config")

    if app_settings.SEED_ON_STARTUP:
        # Deferred so startup completes before seeding begins
        scheduler.trigger("seed")
        logger.info("Seed run scheduled after startup")

    yield

    await scheduler.stop()
    await app.state.stores.aclose()
    logger.info("Store connections closed")


def create_app(
    settings: Optional[Settings] = None,
    stores: Optional[StoreBundle] = None,
    scheduler: Optional[CodexScheduler] = None,
) -> FastAPI:
    app_settings = settings or default_settings
    app_stores = stores or build_stores(app_settings)

    app = FastAPI(
        lifespan=lifespan,
        title=app_settings.APP_NAME,
        description="Codex metadata API with owner and price reconciliation jobs.",
        version="0.1.0",
    )
    app.state.settings = app_settings
    app.state.stores = app_stores
    app.state.scheduler = scheduler or CodexScheduler(app_stores, app_settings)

    @app.exception_handler(CodexBaseError)
    async def codex_error_handler(request: Request, exc: CodexBaseError):
        logger.error(f"Unhandled codex error on {request.url.path}: {exc!r}")
        return JSONResponse(status_code=500, content={"error": exc.code, "message": exc.message})

    app.include_router(health.router)
    app.include_router(codex.router)
    app.include_router(jobs.router)
    return app


app = create_app()
