"""Admin endpoints for cache and upstream management.

All endpoints require the X-Admin-Key header to match ADMIN_API_KEY.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.services.upstream_client import UpstreamClient
from app.stores.memory import ExpiringCache
from app.routes.deps import get_route_cache, get_source_cache, get_upstream, require_admin

router = APIRouter(dependencies=[Depends(require_admin)])
logger = logging.getLogger("uvicorn.error")


class CacheClearRequest(BaseModel):
    """Request body for cache clear endpoint.

    Without keys, the whole route cache is cleared. With include_source,
    the raw upstream/coupon cache is cleared too.
    """

    keys: list[str] | None = None
    include_source: bool = False


class CacheClearResponse(BaseModel):
    """Response from cache clear endpoint."""

    message: str
    cleared_keys: list[str]


@router.post("/cache/clear", response_model=CacheClearResponse)
async def clear_cache(
    body: CacheClearRequest | None = None,
    route_cache: ExpiringCache = Depends(get_route_cache),
    source_cache: ExpiringCache = Depends(get_source_cache),
) -> CacheClearResponse:
    """Clear route cache entries (all, or the given keys)."""
    body = body or CacheClearRequest()

    if body.keys:
        cleared = [key for key in body.keys if route_cache.delete(key)]
        message = f"Cleared {len(cleared)} cache entries"
    else:
        cleared = route_cache.stats()["keys"]
        route_cache.clear()
        message = f"Cleared all {len(cleared)} cache entries"

    if body.include_source:
        source_cache.clear()
        message += " and the source cache"

    logger.info(f"[admin] {message}")
    return CacheClearResponse(message=message, cleared_keys=cleared)


@router.get("/cache/stats")
async def get_cache_stats(
    route_cache: ExpiringCache = Depends(get_route_cache),
    source_cache: ExpiringCache = Depends(get_source_cache),
) -> dict:
    """Describe both caches (keys, ages, freshness)."""
    return {
        "route": route_cache.stats(),
        "source": source_cache.stats(),
    }


@router.get("/upstream/health")
async def get_upstream_health(upstream: UpstreamClient = Depends(get_upstream)) -> dict:
    """Check the product and QR origins."""
    results = await upstream.check_health()
    return {name: asdict(health) for name, health in results.items()}


@router.post("/prefetch")
async def prefetch(upstream: UpstreamClient = Depends(get_upstream)) -> dict[str, bool]:
    """Warm the source cache with product records and the default QR counter."""
    await upstream.prefetch()
    return {"ok": True}
