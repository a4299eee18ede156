"""Coupon analytics backed by the Postgres coupon store.

Usage rules:
- A coupon's issued count per tier comes from coupons.count_<tier>
- Used count per tier = coupon_links rows with is_used = true for that
  coupon id and tier
- Tier value falls back to a default per tier when the stored value is empty
- Coupons with no issued coupons are left out; results sorted by usage rate

Rows are cached in the source cache (~2 minutes). If the database is not
available the service reports empty data instead of failing the request.
"""

import logging
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models import COUPON_TIERS, Coupon, CouponLink
from app.schemas import CouponAnalytics, CouponSummary, CouponTierStats
from app.stores.memory import ExpiringCache
from app.stores.postgres import get_session, is_db_initialized

logger = logging.getLogger("uvicorn.error")

KEY_COUPON_DATA = "coupon_data"
KEY_COUPON_LINKS = "coupon_links"

DEFAULT_TIER_VALUES = {
    "low": 200,
    "mid": 500,
    "high": 1000,
    "pro": 1500,
    "extreme": 2000,
}
FALLBACK_TIER_VALUE = 100

_NON_NUMERIC = re.compile(r"[^\d.]")


def parse_numeric(value: str | None) -> float:
    """Parse a free-text number such as "₹1,500" or "1200 coupons".

    Returns:
        Parsed value, 0 if nothing numeric is present.
    """
    if not value:
        return 0.0
    cleaned = _NON_NUMERIC.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def count_used_links(links: Iterable[CouponLink]) -> dict[str, Counter[str]]:
    """Count used links per coupon id and tier."""
    usage: dict[str, Counter[str]] = {}
    for link in links:
        if link.is_used and link.coupon_id and link.coupon_type:
            usage.setdefault(link.coupon_id, Counter())[link.coupon_type.lower()] += 1
    return usage


def build_coupon_analytics(
    coupons: Sequence[Coupon],
    links: Sequence[CouponLink],
) -> list[CouponAnalytics]:
    """Compute per-coupon usage analytics.

    Args:
        coupons: Coupon configurations.
        links: Coupon links (used and unused).

    Returns:
        Analytics for coupons that issued at least one coupon, highest usage first.
    """
    usage = count_used_links(links)
    results: list[CouponAnalytics] = []

    for coupon in coupons:
        used_by_tier = usage.get(coupon.coupon_id, Counter())
        tiers: dict[str, CouponTierStats] = {}
        total_coupons = 0
        total_used = 0
        total_value = 0.0

        for tier in COUPON_TIERS:
            count = int(parse_numeric(coupon.tier_count(tier)))
            if count <= 0:
                continue
            value = parse_numeric(coupon.tier_value(tier)) or DEFAULT_TIER_VALUES.get(tier, FALLBACK_TIER_VALUE)
            used = used_by_tier.get(tier, 0)
            tiers[tier] = CouponTierStats(
                value=value,
                count=count,
                used=used,
                usage_rate=used / count * 100,
            )
            total_coupons += count
            total_used += used
            total_value += used * value

        if total_coupons == 0:
            continue

        results.append(
            CouponAnalytics(
                id=coupon.coupon_id,
                category=coupon.category or "Unknown",
                brand=coupon.brand or "Unknown",
                model=coupon.model or "Unknown",
                total_coupons=total_coupons,
                used_coupons=total_used,
                usage_rate=total_used / total_coupons * 100,
                total_value=total_value,
                avg_discount=total_value / total_used if total_used else 0.0,
                coupon_types=tiers,
            )
        )

    results.sort(key=lambda a: a.usage_rate, reverse=True)
    return results


def summarize_analytics(analytics: Sequence[CouponAnalytics]) -> CouponSummary:
    """Aggregate a (possibly filtered) analytics list."""
    distribution: Counter[str] = Counter()
    for item in analytics:
        for tier, stats in item.coupon_types.items():
            distribution[tier] += stats.count

    return CouponSummary(
        total_coupons=sum(a.total_coupons for a in analytics),
        total_used=sum(a.used_coupons for a in analytics),
        total_value=sum(a.total_value for a in analytics),
        avg_usage_rate=sum(a.usage_rate for a in analytics) / len(analytics) if analytics else 0.0,
        total_active_coupons=len(analytics),
        type_distribution=dict(distribution),
    )


class CouponService:
    """Loads coupon rows and derives analytics from them."""

    def __init__(self, cache: ExpiringCache):
        self.cache = cache

    async def _load(self, key: str, model: type[Any], order_by: Any = None) -> list[Any]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if not is_db_initialized():
            logger.warning(f"Coupon store not initialized, returning no {key} rows")
            return []

        try:
            async with get_session() as session:
                query = select(model)
                if order_by is not None:
                    query = query.order_by(order_by)
                rows = list((await session.execute(query)).scalars().all())
        except (SQLAlchemyError, OSError):
            logger.exception(f"Error loading {key} from database")
            return []

        logger.info(f"Fetched {len(rows)} {key} rows from database")
        self.cache.set(key, rows)
        return rows

    async def fetch_coupons(self) -> list[Coupon]:
        return await self._load(KEY_COUPON_DATA, Coupon)

    async def fetch_links(self) -> list[CouponLink]:
        return await self._load(KEY_COUPON_LINKS, CouponLink, CouponLink.created_at.desc())

    async def get_analytics(self) -> list[CouponAnalytics]:
        """Per-coupon analytics, highest usage rate first."""
        coupons = await self.fetch_coupons()
        if not coupons:
            logger.warning("No coupon data found")
            return []
        links = await self.fetch_links()
        analytics = build_coupon_analytics(coupons, links)
        logger.info(f"Generated analytics for {len(analytics)} coupons")
        return analytics

    async def get_summary(self) -> CouponSummary:
        """Store-wide summary: every link counts, not just analysed coupons."""
        analytics = await self.get_analytics()
        links = await self.fetch_links()
        summary = summarize_analytics(analytics)
        summary.total_coupons = len(links)
        summary.total_used = sum(1 for link in links if link.is_used)
        return summary
