"""FastAPI application entry point.

Scan Insights API - analytics over product scans, QR scans and coupons.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routes import api_router
from app.schemas import ErrorDetail, ErrorResponse
from app.services.coupons import CouponService
from app.services.upstream_client import UpstreamClient
from app.services.user_id import PhoneNumberClassifier
from app.settings import get_settings
from app.stores.memory import ExpiringCache
from app.stores.postgres import init_db, close_db, ping_db

logger = logging.getLogger("uvicorn.error")


async def _purge_expired_loop(app: FastAPI, interval: float) -> None:
    """Periodically drop expired entries from both caches."""
    while True:
        await asyncio.sleep(interval)
        for cache in (app.state.route_cache, app.state.source_cache):
            cache.purge_expired()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Coupon store is optional: analytics degrade to empty coupon data without it
    try:
        await init_db()
        await ping_db()
        logger.info("Postgres connected")
    except Exception:
        logger.exception("Postgres init failed")

    purge_task = asyncio.create_task(
        _purge_expired_loop(app, settings.cache_purge_interval_seconds)
    )

    yield

    # Shutdown
    purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await purge_task
    await app.state.upstream.close()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Analytics over product scans, QR scans and coupons",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Shared collaborators
    app.state.source_cache = ExpiringCache(settings.source_cache_ttl_seconds, name="source")
    app.state.route_cache = ExpiringCache(settings.route_cache_ttl_seconds, name="route")
    app.state.upstream = UpstreamClient(cache=app.state.source_cache, settings=settings)
    app.state.coupons = CouponService(cache=app.state.source_cache)
    app.state.classifier = PhoneNumberClassifier()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler returning structured error format."""
        logger.exception(f"Unhandled error on {request.url.path}")
        body = ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message=str(exc) if settings.debug else "Internal server error",
                path=request.url.path,
            )
        )
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    # Health check endpoint
    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        """Health check endpoint."""
        return {"ok": True}

    # Include API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
