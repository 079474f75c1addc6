"""FastAPI application for the wallet guard."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.dependencies import get_api_key
from app.routes import audit, wallet
from app.routes.health import get_db_info
from config import GuardSettings, Settings, get_settings
from db.connection import init_database
from nada.services._types import DbInfoDict

logger: logging.Logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = get_settings()
    guard: GuardSettings = settings.guard
    logger.info("DB: %s", settings.database.db_info_for_logging())
    logger.info(
        "Guard: %d exchanges per %ds, %d per day, cap %d points, deny_on_suspicious=%s",
        guard.rate_limit_max,
        guard.rate_limit_window_seconds,
        guard.daily_limit_max,
        guard.max_single_exchange,
        guard.deny_on_suspicious,
    )
    if not settings.api_key:
        logger.warning("NADA_API_KEY is not set; exchange and audit endpoints accept any caller")

    init_database()
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app: FastAPI = FastAPI(
        title="NADA Wallet Guard",
        version="0.1.0",
        lifespan=_lifespan,
    )

    if settings.cors_origins:
        # Browsers only let the client read Retry-After on 429s when it is exposed.
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type", "X-API-Key"],
            expose_headers=["Retry-After"],
        )

    @app.exception_handler(Exception)
    async def _on_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error on %s %s (user_id=%s)",
            request.method,
            request.url.path,
            request.path_params.get("user_id"),
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "type": type(exc).__name__},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health/db", dependencies=[Depends(get_api_key)])
    def health_db() -> DbInfoDict:
        return get_db_info()

    app.include_router(wallet.router)
    app.include_router(audit.router)

    return app


app: FastAPI = create_app()


def start() -> None:
    """Entry point for nada-api."""
    settings: Settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port, reload=settings.reload)
