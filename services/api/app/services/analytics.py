"""Analytics derived from product scan records.

Every view starts from real-user records only (see services.user_id); the
search_source string of each record is parsed on read (see
services.source_parser). User ids leave this module either masked (admin
callers) or replaced by a fixed placeholder.
"""

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone

from app.schemas import (
    CouponAnalytics,
    DashboardStats,
    FeedbackItem,
    Pagination,
    ProductPage,
    ProductRecordOut,
    SourceInfo,
    SourceInsights,
    UserFlow,
)
from app.services.source_parser import SearchStatus, is_search_error, parse_source_info
from app.services.upstream_client import FeedbackRecord, ProductRecord, QrScanData
from app.services.user_id import MASK_PLACEHOLDER, UserIdClassifier, default_classifier


def filter_real_records(
    records: Sequence[ProductRecord],
    classifier: UserIdClassifier = default_classifier,
) -> list[ProductRecord]:
    """Keep records whose user_id passes the real-user rules."""
    return [r for r in records if r.user_id and classifier.is_real(r.user_id)]


def display_user_id(
    user_id: str,
    reveal: bool,
    classifier: UserIdClassifier = default_classifier,
) -> str:
    """Masked id for admins, placeholder for everyone else."""
    return classifier.mask(user_id) if reveal else MASK_PLACEHOLDER


def _is_unknown_product(record: ProductRecord) -> bool:
    return not record.product_name or "unknown" in record.product_name.lower()


def _percent(numerator: float, denominator: float) -> str:
    return f"{numerator / denominator * 100:.2f}" if denominator > 0 else "0"


def build_dashboard_stats(
    records: Sequence[ProductRecord],
    qr: QrScanData,
    coupons: Sequence[CouponAnalytics],
    classifier: UserIdClassifier = default_classifier,
) -> DashboardStats:
    """Compute dashboard headline numbers.

    Args:
        records: Raw product records (all users).
        qr: Default QR scan counter.
        coupons: Coupon analytics.
        classifier: Real-user classifier.

    Returns:
        DashboardStats over real users only.
    """
    real = filter_real_records(records, classifier)
    parsed = [parse_source_info(r.search_source) for r in real]

    unique_users = len({r.user_id for r in real})
    total_sessions = len(real)
    total_errors = sum(
        1 for record, info in zip(real, parsed) if is_search_error(info) or _is_unknown_product(record)
    )

    total_coupons = sum(c.total_coupons for c in coupons)
    total_used = sum(c.used_coupons for c in coupons)
    total_savings = sum(c.total_value for c in coupons)

    return DashboardStats(
        total_users=unique_users,
        unique_users=unique_users,
        total_sessions=total_sessions,
        total_errors=total_errors,
        conversion_rate=_percent(total_used, total_sessions),
        qr_scan_count=qr.qr_scan_count,
        total_coupons=total_coupons,
        total_coupons_used=total_used,
        total_savings=round(total_savings),
        avg_savings_per_coupon=round(total_savings / total_used) if total_used else 0,
        coupon_usage_rate=_percent(total_used, total_coupons),
        comparison_savings=sum(info.savings_amount for info in parsed),
        last_updated=datetime.now(timezone.utc),
    )


def to_record_out(
    record: ProductRecord,
    reveal: bool,
    classifier: UserIdClassifier = default_classifier,
) -> ProductRecordOut:
    return ProductRecordOut(
        id=record.id,
        user_id=display_user_id(record.user_id, reveal, classifier),
        product_name=record.product_name,
        product_price=record.product_price,
        product_brand=record.product_brand,
        product_category=record.product_category,
        search_source=record.search_source,
        source_info=SourceInfo.from_parsed(parse_source_info(record.search_source)),
        timestamp=record.timestamp,
        device_info=record.device_info,
    )


def build_product_page(
    records: Sequence[ProductRecord],
    *,
    limit: int,
    offset: int,
    brand: str | None = None,
    category: str | None = None,
    reveal: bool = False,
    classifier: UserIdClassifier = default_classifier,
) -> ProductPage:
    """Filter real-user records and return one page.

    Brand and category filters are case-insensitive substring matches.
    """
    filtered = filter_real_records(records, classifier)
    if brand:
        needle = brand.lower()
        filtered = [r for r in filtered if needle in r.product_brand.lower()]
    if category:
        needle = category.lower()
        filtered = [r for r in filtered if needle in r.product_category.lower()]

    page = filtered[offset : offset + limit]
    return ProductPage(
        records=[to_record_out(r, reveal, classifier) for r in page],
        total_records=len(filtered),
        pagination=Pagination(
            limit=limit,
            offset=offset,
            has_more=offset + limit < len(filtered),
        ),
    )


def build_source_insights(
    records: Sequence[ProductRecord],
    classifier: UserIdClassifier = default_classifier,
) -> SourceInsights:
    """Aggregate parsed search sources of real-user records."""
    parsed = [parse_source_info(r.search_source) for r in filter_real_records(records, classifier)]

    savings = [info.savings_amount for info in parsed if info.savings_amount > 0]
    successes = sum(1 for info in parsed if info.status is SearchStatus.SUCCESS)

    return SourceInsights(
        total_records=len(parsed),
        by_input_type=dict(Counter(info.input_type.value for info in parsed)),
        by_category=dict(Counter(info.category.value for info in parsed)),
        by_status=dict(Counter(info.status.value for info in parsed)),
        by_best_platform=dict(Counter(info.best_platform for info in parsed if info.best_platform)),
        flipkart_cheaper_count=sum(1 for info in parsed if info.is_flipkart_cheaper),
        amazon_cheaper_count=sum(1 for info in parsed if info.is_amazon_cheaper),
        total_savings=sum(savings),
        avg_savings=round(sum(savings) / len(savings), 2) if savings else 0.0,
        success_rate=round(successes / len(parsed) * 100, 2) if parsed else 0.0,
    )


def build_user_flows(
    records: Sequence[ProductRecord],
    *,
    limit: int,
    reveal: bool = False,
    classifier: UserIdClassifier = default_classifier,
) -> list[UserFlow]:
    """Turn the first `limit` real-user records into flow steps, newest first."""
    flows: list[UserFlow] = []
    for record in filter_real_records(records, classifier)[:limit]:
        info = parse_source_info(record.search_source)
        flows.append(
            UserFlow(
                id=f"product_{record.id}",
                user_id=display_user_id(record.user_id, reveal, classifier),
                timestamp=record.timestamp,
                source=record.search_source,
                destination="Product Search",
                action="error" if is_search_error(info) else "view",
                product_name=record.product_name,
                product_brand=record.product_brand,
                input_type=info.input_type,
                session_id=f"session_{record.id}",
            )
        )
    # ISO-8601 strings sort chronologically.
    flows.sort(key=lambda f: f.timestamp, reverse=True)
    return flows


def build_feedback(
    feedback: Sequence[FeedbackRecord],
    *,
    limit: int,
    reveal: bool = False,
    classifier: UserIdClassifier = default_classifier,
) -> list[FeedbackItem]:
    """Real-user feedback, first `limit` entries."""
    real = [f for f in feedback if f.user_id and classifier.is_real(f.user_id)][:limit]
    return [
        FeedbackItem(
            id=f.id,
            product_name=f.product_name,
            rating=f.rating,
            comment=f.comment,
            timestamp=f.timestamp,
            user_id=display_user_id(f.user_id, reveal, classifier),
        )
        for f in real
    ]
