"""Schemas for the analytics endpoints (/v1/analytics/*)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.services.source_parser import InputType, ParsedSourceInfo, ProductCategory, SearchStatus


class SourceInfo(BaseModel):
    """Parsed search_source fields."""

    amazon_name: str = Field(alias="amazonName", default="")
    flipkart_name: str = Field(alias="flipkartName", default="")
    concise_name: str = Field(alias="conciseName", default="")
    input_type: InputType = Field(alias="inputType", default=InputType.UNSET)
    category: ProductCategory = ProductCategory.UNSET
    is_hardline: bool = Field(alias="isHardline", default=False)
    is_softline: bool = Field(alias="isSoftline", default=False)
    is_flipkart_cheaper: bool = Field(alias="isFlipkartCheaper", default=False)
    is_amazon_cheaper: bool = Field(alias="isAmazonCheaper", default=False)
    best_platform: str = Field(alias="bestPlatform", default="")
    savings_amount: int = Field(alias="savingsAmount", default=0, ge=0)
    status: SearchStatus = SearchStatus.UNSET

    model_config = {"populate_by_name": True}

    @classmethod
    def from_parsed(cls, info: ParsedSourceInfo) -> "SourceInfo":
        return cls(
            amazon_name=info.amazon_name,
            flipkart_name=info.flipkart_name,
            concise_name=info.concise_name,
            input_type=info.input_type,
            category=info.category,
            is_hardline=info.is_hardline,
            is_softline=info.is_softline,
            is_flipkart_cheaper=info.is_flipkart_cheaper,
            is_amazon_cheaper=info.is_amazon_cheaper,
            best_platform=info.best_platform,
            savings_amount=info.savings_amount,
            status=info.status,
        )


class Pagination(BaseModel):
    """Offset pagination metadata."""

    limit: int = Field(ge=0)
    offset: int = Field(ge=0)
    has_more: bool = Field(alias="hasMore")

    model_config = {"populate_by_name": True}


class DashboardStats(BaseModel):
    """Headline numbers for the dashboard overview."""

    total_users: int = Field(alias="totalUsers", ge=0)
    unique_users: int = Field(alias="uniqueUsers", ge=0)
    total_sessions: int = Field(alias="totalSessions", ge=0)
    total_errors: int = Field(alias="totalErrors", ge=0)
    conversion_rate: str = Field(alias="conversionRate")
    qr_scan_count: int = Field(alias="qrScanCount", ge=0)
    total_coupons: int = Field(alias="totalCoupons", ge=0)
    total_coupons_used: int = Field(alias="totalCouponsUsed", ge=0)
    total_savings: int = Field(alias="totalSavings", ge=0)
    avg_savings_per_coupon: int = Field(alias="avgSavingsPerCoupon", ge=0)
    coupon_usage_rate: str = Field(alias="couponUsageRate")
    comparison_savings: int = Field(alias="comparisonSavings", ge=0, default=0)
    last_updated: datetime = Field(alias="lastUpdated")
    data_source: str = Field(alias="dataSource", default="live")

    model_config = {"populate_by_name": True}


class ProductRecordOut(BaseModel):
    """A product scan record with its parsed search source."""

    id: str
    user_id: str = Field(alias="userId")
    product_name: str = Field(alias="productName")
    product_price: float = Field(alias="productPrice")
    product_brand: str = Field(alias="productBrand")
    product_category: str = Field(alias="productCategory")
    search_source: str = Field(alias="searchSource")
    source_info: SourceInfo = Field(alias="sourceInfo")
    timestamp: str
    device_info: str = Field(alias="deviceInfo")

    model_config = {"populate_by_name": True}


class ProductPage(BaseModel):
    """Response payload for GET /v1/analytics/products."""

    records: list[ProductRecordOut]
    total_records: int = Field(alias="totalRecords", ge=0)
    pagination: Pagination

    model_config = {"populate_by_name": True}


class SourceInsights(BaseModel):
    """Distribution of parsed search sources across real-user records."""

    total_records: int = Field(alias="totalRecords", ge=0)
    by_input_type: dict[str, int] = Field(alias="byInputType")
    by_category: dict[str, int] = Field(alias="byCategory")
    by_status: dict[str, int] = Field(alias="byStatus")
    by_best_platform: dict[str, int] = Field(alias="byBestPlatform")
    flipkart_cheaper_count: int = Field(alias="flipkartCheaperCount", ge=0)
    amazon_cheaper_count: int = Field(alias="amazonCheaperCount", ge=0)
    total_savings: int = Field(alias="totalSavings", ge=0)
    avg_savings: float = Field(alias="avgSavings", ge=0)
    success_rate: float = Field(alias="successRate", ge=0, le=100)

    model_config = {"populate_by_name": True}


class UserFlow(BaseModel):
    """One step of a user's journey, derived from a product record."""

    id: str
    user_id: str = Field(alias="userId")
    timestamp: str
    source: str
    destination: str
    action: str
    product_name: str = Field(alias="productName")
    product_brand: str = Field(alias="productBrand")
    input_type: InputType = Field(alias="inputType")
    session_id: str = Field(alias="sessionId")

    model_config = {"populate_by_name": True}


class FeedbackItem(BaseModel):
    """A single product feedback entry."""

    id: str
    product_name: str = Field(alias="productName")
    rating: float
    comment: str
    timestamp: str
    user_id: str = Field(alias="userId")

    model_config = {"populate_by_name": True}


class QrScanResponse(BaseModel):
    """Response payload for GET /v1/analytics/qr-scans."""

    qr_id: str = Field(alias="qrId")
    scan_count: int = Field(alias="scanCount", ge=0)
    timestamp: datetime
    status: str
    error: str | None = None

    model_config = {"populate_by_name": True}


class CouponTierStats(BaseModel):
    """Issued vs used coupons for one tier."""

    value: float
    count: int = Field(ge=0)
    used: int = Field(ge=0)
    usage_rate: float = Field(alias="usageRate", ge=0)

    model_config = {"populate_by_name": True}


class CouponAnalytics(BaseModel):
    """Usage analytics for one coupon configuration."""

    id: str
    category: str
    brand: str
    model: str
    total_coupons: int = Field(alias="totalCoupons", ge=0)
    used_coupons: int = Field(alias="usedCoupons", ge=0)
    usage_rate: float = Field(alias="usageRate", ge=0)
    total_value: float = Field(alias="totalValue", ge=0)
    avg_discount: float = Field(alias="avgDiscount", ge=0)
    coupon_types: dict[str, CouponTierStats] = Field(alias="couponTypes", default_factory=dict)

    model_config = {"populate_by_name": True}


class CouponSummary(BaseModel):
    """Aggregate coupon numbers."""

    total_coupons: int = Field(alias="totalCoupons", ge=0)
    total_used: int = Field(alias="totalUsed", ge=0)
    total_value: float = Field(alias="totalValue", ge=0)
    avg_usage_rate: float = Field(alias="avgUsageRate", ge=0)
    total_active_coupons: int = Field(alias="totalActiveCoupons", ge=0, default=0)
    type_distribution: dict[str, int] = Field(alias="typeDistribution", default_factory=dict)

    model_config = {"populate_by_name": True}


class CouponAnalyticsResponse(BaseModel):
    """Response payload for GET /v1/analytics/coupons."""

    analytics: list[CouponAnalytics]
    summary: CouponSummary
    total_records: int = Field(alias="totalRecords", ge=0)
    last_updated: datetime = Field(alias="lastUpdated")

    model_config = {"populate_by_name": True}


class CouponLinkOut(BaseModel):
    """A coupon link row."""

    id: int
    coupon_id: str = Field(alias="couponId")
    link: str
    coupon_type: str = Field(alias="couponType")
    is_used: bool = Field(alias="isUsed")
    created_at: datetime | None = Field(alias="createdAt", default=None)

    model_config = {"populate_by_name": True, "from_attributes": True}


class CouponLinkPage(BaseModel):
    """Response payload for GET /v1/analytics/coupon-links."""

    links: list[CouponLinkOut]
    total_records: int = Field(alias="totalRecords", ge=0)
    pagination: Pagination
    filters: dict[str, Any]

    model_config = {"populate_by_name": True}
