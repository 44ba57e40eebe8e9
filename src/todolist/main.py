from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .db import SQLiteRepository
from .logging_utils import configure_logging, reset_request_id, set_request_id
from .pool import ConnectionPool
from .routers import todos as todos_router
from .service import TodoService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and readiness probes."},
    {
        "name": "todos",
        "description": "Create, list, filter, update, toggle and delete Todo items.",
    },
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        pool = ConnectionPool(
            settings.database_path,
            max_size=settings.pool_max_size,
            acquire_timeout=settings.pool_timeout,
        )
        try:
            repository = SQLiteRepository(pool)
            repository.init_schema()
            app.state.pool = pool
            app.state.todo_service = TodoService(repository)
            logger.info(
                "Database %s ready (pool max_size=%d, timeout=%.1fs)",
                settings.database_path,
                settings.pool_max_size,
                settings.pool_timeout,
            )
            yield
        finally:
            pool.close()

    return lifespan


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The connection pool is opened when the app starts and closed when it shuts
    down; pass `settings` to point the app at a specific database.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Todo List API",
        description="Task-tracking service backed by a relational todos table.",
        version=__version__,
        openapi_tags=openapi_tags,
        lifespan=_lifespan(settings),
    )

    # Configure CORS based on settings (CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        token = set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error("%s %s 500 %.1fms", request.method, request.url.path, elapsed_ms)
            raise
        finally:
            reset_request_id(token)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """
        Return `{"error": ...}` for routing errors and any HTTPException.
        """
        if exc.status_code == 404:
            message = "Route not found"
        elif exc.status_code == 405:
            message = "Method not allowed"
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Malformed request bodies (e.g. invalid JSON) are client errors.
        """
        logger.info("Rejected request body: %s", exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # PUBLIC_INTERFACE
    @app.get("/", summary="Service Info", tags=["health"])
    def root():
        """
        Describe the service and its endpoints.
        """
        return {
            "message": "Todo List API",
            "version": __version__,
            "endpoints": {"health": "/health", "ready": "/ready", "todos": "/todos"},
        }

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Liveness Probe", tags=["health"])
    def health_check():
        """
        Liveness probe; does not touch the database.
        """
        return {"status": "ok", "timestamp": _now_iso()}

    # PUBLIC_INTERFACE
    @app.get("/ready", summary="Readiness Probe", tags=["health"])
    def readiness_check(request: Request):
        """
        Readiness probe; runs `SELECT 1` through the connection pool.
        """
        result = request.app.state.todo_service.check_ready()
        if not result.ok:
            return JSONResponse(
                status_code=503,
                content={"status": "not ready", "database": "disconnected", "timestamp": _now_iso()},
            )
        return {"status": "ready", "database": "connected", "timestamp": _now_iso()}

    app.include_router(todos_router.router)
    return app


app = create_app()
