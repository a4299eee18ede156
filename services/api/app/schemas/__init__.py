"""Pydantic schemas for API request/response validation."""

from app.schemas.common import ErrorDetail, ErrorResponse
from app.schemas.analytics import (
    CouponAnalytics,
    CouponAnalyticsResponse,
    CouponLinkOut,
    CouponLinkPage,
    CouponSummary,
    CouponTierStats,
    DashboardStats,
    FeedbackItem,
    Pagination,
    ProductPage,
    ProductRecordOut,
    QrScanResponse,
    SourceInfo,
    SourceInsights,
    UserFlow,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "CouponAnalytics",
    "CouponAnalyticsResponse",
    "CouponLinkOut",
    "CouponLinkPage",
    "CouponSummary",
    "CouponTierStats",
    "DashboardStats",
    "FeedbackItem",
    "Pagination",
    "ProductPage",
    "ProductRecordOut",
    "QrScanResponse",
    "SourceInfo",
    "SourceInsights",
    "UserFlow",
]
