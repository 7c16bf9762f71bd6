"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from telemetry_server.api import routes
from telemetry_server.core.config import Settings, load_settings
from telemetry_server.core.exceptions import StoreError
from telemetry_server.logging import configure_logging, get_request_id
from telemetry_server.middleware.request_context import RequestContextMiddleware
from telemetry_server.storage.records import RecordStore

logger = logging.getLogger("telemetry.app")


def open_store(settings: Settings) -> RecordStore:
    """Connect to the configured database and ensure its schema exists."""
    try:
        store = RecordStore(settings.database_url)
        store.init_schema()
    except StoreError:
        logger.critical("Record store initialization failed", exc_info=True)
        raise
    return store


def create_app(store: RecordStore | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the service app; ``store`` is opened from settings at startup when omitted."""
    settings = settings or load_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.store is None:
            app.state.store = open_store(settings)
        logger.info("Telemetry server ready", extra={"server_address": settings.server_address})
        try:
            yield
        finally:
            app.state.store.dispose()

    app = FastAPI(title="Deployment Telemetry Server", version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.include_router(routes.router)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error",
            extra={
                "event": "request_error",
                "path": request.url.path,
                "request_id": get_request_id(),
            },
        )
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


app = create_app()
