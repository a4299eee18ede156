"""Coupon models.

Coupons are configured per (category, brand, model) with five value tiers.
Tier values and counts are stored as the free text the coupon team enters
(e.g. "₹500", "1,200"); analytics parse them on read.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base

COUPON_TIERS = ("low", "mid", "high", "pro", "extreme")


class Coupon(Base):
    """Coupon configuration for one product model."""

    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Business identifier shared with coupon_links.coupon_id
    coupon_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    category: Mapped[str | None] = mapped_column(String(200))
    brand: Mapped[str | None] = mapped_column(String(200), index=True)
    model: Mapped[str | None] = mapped_column(String(200))
    fsn_list: Mapped[str | None] = mapped_column(Text)  # JSON array of Flipkart FSNs

    min_range: Mapped[str | None] = mapped_column(String(50))
    max_range: Mapped[str | None] = mapped_column(String(50))

    # Tier values (discount per coupon)
    value_low: Mapped[str | None] = mapped_column(String(50))
    value_mid: Mapped[str | None] = mapped_column(String(50))
    value_high: Mapped[str | None] = mapped_column(String(50))
    value_pro: Mapped[str | None] = mapped_column(String(50))
    value_extreme: Mapped[str | None] = mapped_column(String(50))

    # Tier counts (coupons issued)
    count_low: Mapped[str | None] = mapped_column(String(50))
    count_mid: Mapped[str | None] = mapped_column(String(50))
    count_high: Mapped[str | None] = mapped_column(String(50))
    count_pro: Mapped[str | None] = mapped_column(String(50))
    count_extreme: Mapped[str | None] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def tier_value(self, tier: str) -> str | None:
        return getattr(self, f"value_{tier}")

    def tier_count(self, tier: str) -> str | None:
        return getattr(self, f"count_{tier}")

    def __repr__(self) -> str:
        return f"<Coupon {self.coupon_id} {self.brand} {self.model}>"


class CouponLink(Base):
    """A single redeemable coupon link."""

    __tablename__ = "coupon_links"

    id: Mapped[int] = mapped_column(primary_key=True)
    coupon_id: Mapped[str] = mapped_column(String(100), index=True)
    link: Mapped[str] = mapped_column(Text)
    coupon_type: Mapped[str] = mapped_column(String(20), index=True)  # one of COUPON_TIERS
    is_used: Mapped[bool] = mapped_column(default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<CouponLink {self.coupon_id}/{self.coupon_type} used={self.is_used}>"
