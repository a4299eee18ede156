"""Shared fixtures for route tests.

Route tests run against a fresh app whose upstream client and coupon service
are replaced by in-memory fakes on app.state. The lifespan is not run by
ASGITransport, so no database or network is touched.
"""

import asyncio

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.main import create_app
from app.schemas import CouponAnalytics, CouponTierStats
from app.services.coupons import summarize_analytics
from app.services.upstream_client import (
    OriginHealth,
    QrScanData,
    normalize_feedback_record,
    normalize_product_record,
)
from app.models import CouponLink
from app.settings import get_settings

ADMIN_KEY = "test-admin-key"


class FakeUpstream:
    """Stands in for UpstreamClient."""

    def __init__(self):
        self.calls: dict[str, int] = {}
        self.delay = 0.0
        self.records = [
            normalize_product_record(
                {
                    "_id": "p1",
                    "user_id": "9123456780",
                    "product_name": "Sony WH-1000XM4",
                    "product_brand": "Sony",
                    "product_category": "Headphones",
                    "search_source": "amazon_name-->Sony WH-1000XM4, flipkart_name-->Sony Headphones, "
                    "image_url, Hardline, Best: Flipkart - Savings: ₹2,500, SUCCESS",
                    "timestamp": "2026-10-01T10:00:00Z",
                }
            ),
            normalize_product_record(
                {
                    "_id": "p2",
                    "user_id": "8123456709",
                    "product_name": "Levi's 511, Slim",
                    "product_brand": "Levis",
                    "product_category": "Jeans",
                    "search_source": "Text, Softline, ERROR",
                    "timestamp": "2026-10-02T10:00:00Z",
                }
            ),
            normalize_product_record({"_id": "fake", "user_id": "9876543210"}),
        ]
        self.feedback = [
            normalize_feedback_record({"_id": "f1", "user_id": "9123456780", "rating": 5, "comment": "nice"}),
            normalize_feedback_record({"_id": "f2", "user_id": "1234567890", "rating": 1}),
        ]

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def fetch_product_records(self, use_cache: bool = True):
        self._count("records")
        await asyncio.sleep(self.delay)
        return self.records

    async def fetch_product_feedback(self, use_cache: bool = True):
        self._count("feedback")
        return self.feedback

    async def fetch_qr_scan_count(self, qr_id: str = "default", use_cache: bool = True):
        self._count("qr")
        if qr_id == "broken":
            return QrScanData(qr_scan_count=0, error="QR origin unavailable")
        return QrScanData(qr_scan_count=42)

    async def fetch_multiple_qr_scans(self, qr_ids):
        self._count("qr_batch")
        return {qr_id: await self.fetch_qr_scan_count(qr_id) for qr_id in dict.fromkeys(qr_ids)}

    async def check_health(self):
        return {
            "product_api": OriginHealth(status="healthy", response_time_ms=12),
            "qr_api": OriginHealth(status="unhealthy", error="timeout"),
        }

    async def prefetch(self):
        self._count("prefetch")

    async def close(self):
        pass


class FakeCouponService:
    """Stands in for CouponService."""

    def __init__(self):
        self.analytics = [
            CouponAnalytics(
                id="c1",
                category="Audio",
                brand="Sony",
                model="XM4",
                total_coupons=10,
                used_coupons=5,
                usage_rate=50.0,
                total_value=2500.0,
                avg_discount=500.0,
                coupon_types={"mid": CouponTierStats(value=500, count=10, used=5, usage_rate=50.0)},
            ),
            CouponAnalytics(
                id="c2",
                category="Fashion",
                brand="Levis",
                model="511",
                total_coupons=4,
                used_coupons=1,
                usage_rate=25.0,
                total_value=200.0,
                avg_discount=200.0,
                coupon_types={"low": CouponTierStats(value=200, count=4, used=1, usage_rate=25.0)},
            ),
        ]
        self.links = [
            CouponLink(id=1, coupon_id="c1", link="https://x/1", coupon_type="mid", is_used=True),
            CouponLink(id=2, coupon_id="c1", link="https://x/2", coupon_type="mid", is_used=False),
            CouponLink(id=3, coupon_id="c2", link="https://x/3", coupon_type="low", is_used=True),
        ]

    async def get_analytics(self):
        return self.analytics

    async def fetch_links(self):
        return self.links

    async def get_summary(self):
        summary = summarize_analytics(self.analytics)
        summary.total_coupons = len(self.links)
        summary.total_used = sum(1 for link in self.links if link.is_used)
        return summary


@pytest.fixture(autouse=True)
def admin_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    get_settings.cache_clear()
    yield ADMIN_KEY
    get_settings.cache_clear()


@pytest.fixture
def app() -> FastAPI:
    app = create_app()
    app.state.upstream = FakeUpstream()
    app.state.coupons = FakeCouponService()
    return app


@pytest.fixture
async def client(app: FastAPI):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
