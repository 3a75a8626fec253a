"""FastAPI application factory."""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import psycopg2
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from psycopg2.pool import PoolError

from innkeeper.domain.availability import InvalidStayError, StoreUnavailableError
from innkeeper.infra.db import close_pool, open_pool
from innkeeper.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from innkeeper.observability.logging import get_logger
from innkeeper.observability.redaction import safe_log_context

from .routers import public

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the connection pool for the lifetime of the process."""
    app.state.db_pool = None
    if os.environ.get("DATABASE_URL"):
        app.state.db_pool = open_pool()
        logger.info("database pool opened")
    try:
        yield
    finally:
        if app.state.db_pool is not None:
            close_pool(app.state.db_pool)
            app.state.db_pool = None
            logger.info("database pool closed")


def create_app() -> FastAPI:
    """Create the FastAPI app with middleware, error handlers and routes."""
    app = FastAPI(
        title="Innkeeper",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        return JSONResponse(status_code=503, content={"detail": "Database unavailable"})

    @app.exception_handler(psycopg2.OperationalError)
    async def db_operational_handler(request: Request, exc: psycopg2.OperationalError):
        logger.error(
            "database operational error",
            extra={"extra_fields": {"path": request.url.path, "error": type(exc).__name__}},
        )
        return JSONResponse(status_code=503, content={"detail": "Database unavailable"})

    @app.exception_handler(PoolError)
    async def pool_exhausted_handler(request: Request, exc: PoolError):
        logger.error(
            "database pool exhausted",
            extra={"extra_fields": safe_log_context(path=request.url.path, error=str(exc))},
        )
        return JSONResponse(status_code=503, content={"detail": "Database unavailable"})

    @app.exception_handler(InvalidStayError)
    async def invalid_stay_handler(request: Request, exc: InvalidStayError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    app.include_router(public.router)

    return app
