"""Analytics endpoints for the staff dashboard.

GET /v1/analytics/dashboard         - headline numbers
GET /v1/analytics/products          - paginated real-user product records
GET /v1/analytics/source-insights   - distribution of parsed search sources
GET /v1/analytics/user-flows        - recent user journey steps
GET /v1/analytics/product-feedback  - real-user feedback
GET /v1/analytics/coupons           - coupon usage analytics
GET /v1/analytics/coupon-links      - coupon link rows
GET /v1/analytics/qr-scans/{qrId}   - QR scan counter
GET /v1/analytics/qr-scans/batch    - several QR counters (?qrIds=a,b)
GET /v1/analytics/export/{type}     - JSON/CSV download

Derived payloads are cached in the route cache under keys that include the
query parameters and the caller's role.
"""

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import Response

from app.schemas import (
    CouponAnalyticsResponse,
    CouponLinkOut,
    CouponLinkPage,
    DashboardStats,
    FeedbackItem,
    Pagination,
    ProductPage,
    QrScanResponse,
    SourceInsights,
    UserFlow,
)
from app.services.analytics import (
    build_dashboard_stats,
    build_feedback,
    build_product_page,
    build_source_insights,
    build_user_flows,
)
from app.services.coupons import CouponService, summarize_analytics
from app.services.export import EXPORT_TYPES, export_filename, model_rows, product_rows, to_csv
from app.services.upstream_client import QrScanData, UpstreamClient
from app.services.user_id import UserIdClassifier
from app.stores.memory import ExpiringCache, cache_key
from app.routes.deps import (
    get_classifier,
    get_coupon_service,
    get_route_cache,
    get_upstream,
    is_admin,
)

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


QR_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")
MAX_QR_BATCH = 50


def _role(admin: bool) -> str:
    return "admin" if admin else "viewer"


@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard(
    cache: ExpiringCache = Depends(get_route_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    coupons: CouponService = Depends(get_coupon_service),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> DashboardStats:
    """Get dashboard stats over real users."""

    async def load() -> DashboardStats:
        logger.info("Fetching fresh dashboard data...")
        qr, records, coupon_analytics = await asyncio.gather(
            upstream.fetch_qr_scan_count(),
            upstream.fetch_product_records(),
            coupons.get_analytics(),
        )
        return build_dashboard_stats(records, qr, coupon_analytics, classifier)

    return await cache.get_or_load("dashboard_stats", load)


@router.get("/products", response_model=ProductPage)
async def get_products(
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    brand: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=100),
    admin: bool = Depends(is_admin),
    cache: ExpiringCache = Depends(get_route_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> ProductPage:
    """Get a page of real-user product records with parsed search sources."""
    key = cache_key("products", limit=limit, offset=offset, brand=brand, category=category, role=_role(admin))

    async def load() -> ProductPage:
        records = await upstream.fetch_product_records()
        return build_product_page(
            records,
            limit=limit,
            offset=offset,
            brand=brand,
            category=category,
            reveal=admin,
            classifier=classifier,
        )

    return await cache.get_or_load(key, load)


@router.get("/source-insights", response_model=SourceInsights)
async def get_source_insights(
    cache: ExpiringCache = Depends(get_route_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> SourceInsights:
    """Get input type / category / status / best platform distributions."""

    async def load() -> SourceInsights:
        return build_source_insights(await upstream.fetch_product_records(), classifier)

    return await cache.get_or_load("source_insights", load)


@router.get("/user-flows", response_model=list[UserFlow])
async def get_user_flows(
    limit: int = Query(default=100, ge=1, le=1000),
    admin: bool = Depends(is_admin),
    cache: ExpiringCache = Depends(get_route_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> list[UserFlow]:
    """Get recent user journey steps, newest first."""

    async def load() -> list[UserFlow]:
        records = await upstream.fetch_product_records()
        return build_user_flows(records, limit=limit, reveal=admin, classifier=classifier)

    return await cache.get_or_load(cache_key("user_flows", limit=limit, role=_role(admin)), load)


@router.get("/product-feedback", response_model=list[FeedbackItem])
async def get_product_feedback(
    limit: int = Query(default=50, ge=1, le=1000),
    admin: bool = Depends(is_admin),
    cache: ExpiringCache = Depends(get_route_cache),
    upstream: UpstreamClient = Depends(get_upstream),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> list[FeedbackItem]:
    """Get real-user product feedback."""

    async def load() -> list[FeedbackItem]:
        feedback = await upstream.fetch_product_feedback()
        return build_feedback(feedback, limit=limit, reveal=admin, classifier=classifier)

    return await cache.get_or_load(cache_key("product_feedback", limit=limit, role=_role(admin)), load)


@router.get("/coupons", response_model=CouponAnalyticsResponse)
async def get_coupons(
    coupon_type: str | None = Query(default=None, alias="type", max_length=20),
    limit: int = Query(default=50, ge=1, le=1000),
    summary: bool = Query(default=False, description="Use store-wide summary instead of filtered totals"),
    cache: ExpiringCache = Depends(get_route_cache),
    coupons: CouponService = Depends(get_coupon_service),
) -> CouponAnalyticsResponse:
    """Get coupon usage analytics, optionally filtered by tier."""

    async def load() -> CouponAnalyticsResponse:
        analytics = await coupons.get_analytics()
        if coupon_type:
            wanted = coupon_type.lower()
            analytics = [a for a in analytics if any(t.lower() == wanted for t in a.coupon_types)]

        return CouponAnalyticsResponse(
            analytics=analytics[:limit],
            summary=await coupons.get_summary() if summary else summarize_analytics(analytics),
            total_records=len(analytics),
            last_updated=datetime.now(timezone.utc),
        )

    return await cache.get_or_load(cache_key("coupons", type=coupon_type, limit=limit, summary=summary), load)


@router.get("/coupon-links", response_model=CouponLinkPage)
async def get_coupon_links(
    coupon_id: str | None = Query(default=None, alias="couponId", max_length=100),
    coupon_type: str | None = Query(default=None, alias="couponType", max_length=20),
    is_used: bool | None = Query(default=None, alias="isUsed"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    cache: ExpiringCache = Depends(get_route_cache),
    coupons: CouponService = Depends(get_coupon_service),
) -> CouponLinkPage:
    """Get coupon links with optional filters."""
    filters = {"couponId": coupon_id, "couponType": coupon_type, "isUsed": is_used}

    async def load() -> CouponLinkPage:
        links = await coupons.fetch_links()
        if coupon_id:
            links = [link for link in links if link.coupon_id == coupon_id]
        if coupon_type:
            links = [link for link in links if (link.coupon_type or "").lower() == coupon_type.lower()]
        if is_used is not None:
            links = [link for link in links if link.is_used is is_used]

        return CouponLinkPage(
            links=[CouponLinkOut.model_validate(link) for link in links[offset : offset + limit]],
            total_records=len(links),
            pagination=Pagination(limit=limit, offset=offset, has_more=offset + limit < len(links)),
            filters=filters,
        )

    return await cache.get_or_load(cache_key("coupon_links", limit=limit, offset=offset, **filters), load)


@router.get("/qr-scans", response_model=QrScanResponse)
async def get_default_qr_scans(
    upstream: UpstreamClient = Depends(get_upstream),
) -> QrScanResponse:
    """Get the scan counter for the campaign QR code."""
    return await _qr_scan_response("default", upstream)


@router.get("/qr-scans/batch", response_model=list[QrScanResponse])
async def get_qr_scans_batch(
    qr_ids: str = Query(
        alias="qrIds",
        min_length=1,
        max_length=2000,
        description="Comma-separated QR ids",
    ),
    upstream: UpstreamClient = Depends(get_upstream),
) -> list[QrScanResponse]:
    """Get scan counters for several QR codes in one call."""
    ids = [part.strip() for part in qr_ids.split(",") if part.strip()]
    if not ids or len(ids) > MAX_QR_BATCH:
        raise HTTPException(status_code=400, detail=f"qrIds must list 1 to {MAX_QR_BATCH} ids")
    invalid = [qr_id for qr_id in ids if not QR_ID_PATTERN.fullmatch(qr_id)]
    if invalid:
        raise HTTPException(status_code=400, detail=f"Invalid QR ids: {invalid}")

    scans = await upstream.fetch_multiple_qr_scans(ids)
    return [_to_qr_response(qr_id, qr) for qr_id, qr in scans.items()]


@router.get("/qr-scans/{qr_id}", response_model=QrScanResponse)
async def get_qr_scans(
    qr_id: str = Path(
        min_length=1,
        max_length=64,
        pattern=QR_ID_PATTERN.pattern,
    ),
    upstream: UpstreamClient = Depends(get_upstream),
) -> QrScanResponse:
    """Get the scan counter for a QR code (cached at the source, ~2 minutes)."""
    return await _qr_scan_response(qr_id, upstream)


def _to_qr_response(qr_id: str, qr: QrScanData) -> QrScanResponse:
    return QrScanResponse(
        qr_id=qr_id,
        scan_count=qr.qr_scan_count,
        timestamp=datetime.now(timezone.utc),
        status="error" if qr.error else "success",
        error=qr.error,
    )


async def _qr_scan_response(qr_id: str, upstream: UpstreamClient) -> QrScanResponse:
    return _to_qr_response(qr_id, await upstream.fetch_qr_scan_count(qr_id))


@router.get("/export/{export_type}")
async def export_data(
    export_type: str,
    fmt: Literal["json", "csv"] = Query(default="json", alias="format"),
    admin: bool = Depends(is_admin),
    upstream: UpstreamClient = Depends(get_upstream),
    coupons: CouponService = Depends(get_coupon_service),
    classifier: UserIdClassifier = Depends(get_classifier),
) -> Response:
    """Download products, coupon analytics or coupon links."""
    if export_type not in EXPORT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid export type: {export_type}. Supported: {list(EXPORT_TYPES)}",
        )

    if export_type == "products":
        rows = product_rows(await upstream.fetch_product_records(), reveal=admin, classifier=classifier)
    elif export_type == "coupons":
        rows = model_rows(await coupons.get_analytics())
    else:
        rows = model_rows([CouponLinkOut.model_validate(link) for link in await coupons.fetch_links()])

    filename = export_filename(export_type, fmt)
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if fmt == "csv":
        return Response(content=to_csv(rows), media_type="text/csv", headers=headers)
    return Response(
        content=json.dumps(rows, ensure_ascii=False),
        media_type="application/json",
        headers=headers,
    )
