"""FastAPI application for the tourpricing API."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tourpricing.config import get_config
from tourpricing.core.logging import configure_logging
from tourpricing.db.connection import close_db
from tourpricing.utils.redis_cache import close_cache
from tourpricing.web.routes import health, pricing, progress


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config.log_level, config.json_logs)
    yield
    await close_cache()
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(title="Tour Pricing API", lifespan=lifespan)
    app.include_router(health.router)
    app.include_router(pricing.router)
    app.include_router(progress.router)
    return app


app = create_app()
