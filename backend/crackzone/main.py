"""CrackZone API application: middleware, error envelope, health probes and routers."""

import time
import traceback
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from crackzone.api import (
    auth_router,
    banners_router,
    email_router,
    images_router,
    matches_router,
    notifications_router,
    orders_router,
    rewards_router,
    teams_router,
    tournaments_router,
    transactions_router,
    users_router,
)
from crackzone.config import get_settings
from crackzone.logging_config import bind_context, clear_context, configure_logging, get_logger
from crackzone.middleware.rate_limit import RateLimitMiddleware
from crackzone.utils.cache import close_cache, init_cache
from crackzone.utils.db import close_db, engine, init_db
from crackzone.utils.errors import ErrorCode, PersistenceError, PlatformError
from crackzone.utils.json_utils import ORJSONResponse
from crackzone.utils.redis_client import close_redis, get_redis, init_redis
from crackzone.ws.gateway import init_manager, shutdown_manager
from crackzone.ws.gateway import router as ws_router

settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.app_env == "production",
    app_env=settings.app_env,
)
logger = get_logger(__name__)

STARTED_AT = time.monotonic()


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Open the database, Redis, the cache and the realtime hub; close them in reverse."""
    try:
        await init_db()
        redis_instance = await init_redis()
        init_cache(redis_instance)
        await init_manager(redis_instance)
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise
    logger.info(
        "startup_complete",
        env=settings.app_env,
        redis=redis_instance is not None,
        cache=settings.cache_backend,
    )

    yield

    try:
        await shutdown_manager()
        await close_cache()
        await close_redis()
        await close_db()
    except Exception as e:
        logger.error("shutdown_failed", error=str(e))
    else:
        logger.info("shutdown_complete")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="CrackZone API",
    version="1.0.0",
    description="Esports tournament platform API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (client supplied or fresh) and logs its outcome."""

    async def dispatch(self, request: Request, call_next):
        # BaseHTTPMiddleware does not handle websocket upgrades
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        clear_context()
        bind_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            duration = time.perf_counter() - start

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration=round(duration, 3),
        )
        clear_context()
        return response


if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware)

app.add_middleware(RequestIDMiddleware)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Trace-Id"],
    expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
)


# =============================================================================
# Error Handlers
# =============================================================================


def _trace_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid.uuid4())


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    exc: Exception | None = None,
) -> ORJSONResponse:
    """Render the error envelope shared by every failing endpoint."""
    content: dict[str, Any] = {
        "error": {"code": code, "message": message, "details": details or {}},
        "message": message,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "traceId": _trace_id(request),
    }
    if settings.app_debug and exc is not None:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return ORJSONResponse(status_code=status_code, content=content)


@app.exception_handler(PlatformError)
async def platform_error_handler(request: Request, exc: PlatformError) -> ORJSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("platform_error", code=exc.code, message=exc.message, status=exc.status_code)
    return error_response(
        request,
        exc.status_code,
        exc.code,
        exc.message,
        exc.details,
        exc if exc.status_code >= 500 else None,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR.value,
        "Validation failed",
        {"errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(
            request,
            exc.status_code,
            ErrorCode.ROUTE_NOT_FOUND.value,
            f"Route {request.method} {request.url.path} not found",
        )
    return error_response(request, exc.status_code, "HTTP_ERROR", str(exc.detail))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> ORJSONResponse:
    # Constraint failures raised by a plain flush outside ``atomic``
    return await platform_error_handler(request, PersistenceError.from_exception(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.error("unhandled_exception", error_type=type(exc).__name__, error=str(exc), exc_info=True)
    message = f"{type(exc).__name__}: {exc}" if settings.app_debug else "Internal server error"

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR.value,
        message,
        exc=exc,
    )


# =============================================================================
# Health Check Endpoints
# =============================================================================


async def _check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return "disconnected"


async def _check_cache() -> str:
    redis = get_redis()
    if redis is None:
        return "memory" if settings.cache_backend == "memory" else "disconnected"
    try:
        await redis.ping()
        return "connected"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return "disconnected"


@app.get("/health", tags=["Health"], summary="Health check endpoint")
async def health_check() -> dict[str, Any]:
    """Application and dependency status."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "services": {
            "database": await _check_database(),
            "cache": await _check_cache(),
        },
    }


@app.get("/health/live", tags=["Health"], summary="Liveness probe")
async def liveness_probe() -> dict[str, str]:
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"], summary="Readiness probe")
async def readiness_probe():
    """Ready when the database answers and the cache is usable."""
    database = await _check_database()
    cache = await _check_cache()
    if database != "connected" or cache == "disconnected":
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready", "services": {"database": database, "cache": cache}},
        )
    return {"status": "ready"}


# =============================================================================
# API Routers
# =============================================================================


API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(tournaments_router, prefix=API_PREFIX)
app.include_router(teams_router, prefix=API_PREFIX)
app.include_router(matches_router, prefix=API_PREFIX)
app.include_router(transactions_router, prefix=API_PREFIX)
app.include_router(orders_router, prefix=API_PREFIX)
app.include_router(rewards_router, prefix=API_PREFIX)
app.include_router(notifications_router, prefix=API_PREFIX)
app.include_router(images_router, prefix=API_PREFIX)
app.include_router(banners_router, prefix=API_PREFIX)
app.include_router(email_router, prefix=API_PREFIX)

# WebSocket router (no prefix - endpoint is /ws)
app.include_router(ws_router)


@app.get("/", tags=["Root"], summary="API root endpoint")
async def root() -> dict[str, str]:
    return {
        "name": "CrackZone API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    if settings.app_debug:
        uvicorn.run(
            "crackzone.main:app",
            host=settings.app_host,
            port=settings.app_port,
            reload=True,
            log_level=settings.log_level.lower(),
        )
    else:
        # Multiple workers need Redis for the cache and websocket fan-out
        uvicorn.run(
            "crackzone.main:app",
            host=settings.app_host,
            port=settings.app_port,
            workers=settings.uvicorn_workers,
            log_level=settings.log_level.lower(),
            timeout_keep_alive=5,
        )
