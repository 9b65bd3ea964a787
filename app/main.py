"""Application entrypoint for the LeadLedger API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1 import get_api_router
from app.api.v1._errors import install_error_handlers
from app.core.config import get_config
from app.core.startup import bootstrap


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    bootstrap()
    yield


def create_app(run_bootstrap: bool = True) -> FastAPI:
    cfg = get_config()
    app = FastAPI(
        title=cfg.APP_NAME,
        version=cfg.APP_VERSION,
        lifespan=_lifespan if run_bootstrap else None,
    )
    app.include_router(get_api_router())
    install_error_handlers(app)

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Exposed for `uvicorn app.main:app`.
app = create_app()
