"""SQLAlchemy ORM models.

Models represent database tables:
- coupons: Coupon configuration per product model, five value tiers
- coupon_links: Individual coupon links with redemption state
"""

from app.models.coupon import COUPON_TIERS, Coupon, CouponLink

__all__ = ["COUPON_TIERS", "Coupon", "CouponLink"]
