"""
FastAPI application factory for the WalletGate API server.

Uses lifespan handler for startup/shutdown with async resource management.
Run with: uvicorn walletgate.api.app:app
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from walletgate.config import StoreBackend, settings
from walletgate.errors import WalletGateError
from walletgate.logging_config import configure_logging, get_logger
from walletgate.redis.client import close_redis, init_redis
from walletgate.store import close_stores, init_stores

from .health import router as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting WalletGate API server", version="0.1.0")

    if settings.store.backend == StoreBackend.REDIS:
        await init_redis()
        logger.info("Redis initialized")

    await init_stores()

    if not settings.discord.client_id or not settings.discord.client_secret:
        logger.warning("Discord OAuth client is not fully configured; logins will fail")
    if not settings.role_assignment.endpoint_url:
        logger.warning("Role assignment endpoint not configured; assignments will fail")

    yield

    # Shutdown
    logger.info("Shutting down WalletGate API server")
    await close_stores()
    await close_redis()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="WalletGate API",
        description="Discord login, wallet profiles and role assignment",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # CORS middleware
    if settings.cors.allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors.allow_origins,
            allow_credentials=settings.cors.allow_credentials,
            allow_methods=settings.cors.allow_methods,
            allow_headers=settings.cors.allow_headers,
        )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Ensure every request has a request ID for logging correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        structlog.contextvars.unbind_contextvars("request_id")

        return response

    @app.exception_handler(WalletGateError)
    async def walletgate_error_handler(request: Request, exc: WalletGateError) -> JSONResponse:
        """Render expected failures as {ok: false, error, code}."""
        logger.info(
            "Request failed",
            code=exc.code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        content: dict[str, object] = {"ok": False, "error": exc.public_message, "code": exc.code}
        if exc.expose_detail and exc.detail:
            content["detail"] = exc.detail
        return JSONResponse(status_code=exc.status_code, content=content)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # Discord login
    from walletgate.api.routers.auth import router as auth_router

    app.include_router(auth_router)

    # Profile and role assignment
    from walletgate.api.routers.profile import router as profile_router

    app.include_router(profile_router)

    return app


# Application instance
app = create_application()
