from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from mealgen.api import router as api_router
from mealgen.api.routes.generations import shutdown_sessions
from mealgen.core.config.settings import settings
from mealgen.core.logging.setup import configure_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    log.info("app.startup", environment=settings.env, stage_profile=settings.stage_profile)
    yield
    closed = shutdown_sessions()
    log.info("app.shutdown", closed_generations=closed)


def create_app() -> FastAPI:
    """
    Application factory: the single place the FastAPI app is created and configured.
    """
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)

    app = FastAPI(
        title="Mealgen Progress Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api")

    return app


# ASGI entrypoint
app = create_app()
