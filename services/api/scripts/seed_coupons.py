#!/usr/bin/env python3
"""Seed the coupon store from CSV exports.

Coupons CSV columns (as exported by the coupon team's sheet):
    id, Category, Brand, Model, FSN List, Min Range, Max Range,
    Coupon Value_<tier>, Coupon Count_<tier>   for tier in low/mid/high/pro/extreme

Coupon links CSV columns:
    id, Coupon Link, Coupon type, is_used

Idempotent: coupons are upserted by id; links are skipped if the same
(id, link) pair already exists.

Usage:
    cd services/api
    python -m scripts.seed_coupons --coupons coupons.csv --links coupon_links.csv
"""

import argparse
import asyncio
import csv
import json
import logging
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import select

from app.models import COUPON_TIERS, Coupon, CouponLink
from app.stores.postgres import close_db, create_tables, get_session, init_db

load_dotenv()

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes", "y", "used"}


def _read_csv(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8-sig") as f:
        return [{k.strip(): (v or "").strip() for k, v in row.items() if k} for row in csv.DictReader(f)]


def coupon_fields(row: dict[str, str]) -> dict[str, str | None]:
    """Map a sheet row onto Coupon column values."""
    fsn = row.get("FSN List") or ""
    fields: dict[str, str | None] = {
        "category": row.get("Category") or None,
        "brand": row.get("Brand") or None,
        "model": row.get("Model") or None,
        "fsn_list": json.dumps([s.strip() for s in fsn.split(",") if s.strip()]) if fsn else None,
        "min_range": row.get("Min Range") or None,
        "max_range": row.get("Max Range") or None,
    }
    for tier in COUPON_TIERS:
        fields[f"value_{tier}"] = row.get(f"Coupon Value_{tier}") or None
        fields[f"count_{tier}"] = row.get(f"Coupon Count_{tier}") or None
    return fields


async def seed_coupons(path: Path) -> tuple[int, int]:
    """Upsert coupons. Returns (created, updated)."""
    created = updated = 0
    async with get_session() as session:
        for row in _read_csv(path):
            coupon_id = row.get("id")
            if not coupon_id:
                continue
            existing = (
                await session.execute(select(Coupon).where(Coupon.coupon_id == coupon_id))
            ).scalar_one_or_none()
            fields = coupon_fields(row)
            if existing:
                for name, value in fields.items():
                    setattr(existing, name, value)
                updated += 1
            else:
                session.add(Coupon(coupon_id=coupon_id, **fields))
                created += 1
    return created, updated


async def seed_links(path: Path) -> int:
    """Insert new coupon links. Returns number created."""
    created = 0
    async with get_session() as session:
        existing = {
            (coupon_id, link)
            for coupon_id, link in (await session.execute(select(CouponLink.coupon_id, CouponLink.link))).all()
        }
        for row in _read_csv(path):
            coupon_id, link = row.get("id"), row.get("Coupon Link")
            coupon_type = (row.get("Coupon type") or "").lower()
            if not coupon_id or not link or coupon_type not in COUPON_TIERS:
                continue
            if (coupon_id, link) in existing:
                continue
            session.add(
                CouponLink(
                    coupon_id=coupon_id,
                    link=link,
                    coupon_type=coupon_type,
                    is_used=row.get("is_used", "").lower() in _TRUTHY,
                )
            )
            existing.add((coupon_id, link))
            created += 1
    return created


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed coupon tables from CSV")
    parser.add_argument("--coupons", type=Path, help="Coupons CSV")
    parser.add_argument("--links", type=Path, help="Coupon links CSV")
    parser.add_argument("--create-tables", action="store_true", help="Create tables first (dev only)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    await init_db()
    try:
        if args.create_tables:
            await create_tables()
        if args.coupons:
            created, updated = await seed_coupons(args.coupons)
            logger.info(f"Coupons: {created} created, {updated} updated")
        if args.links:
            logger.info(f"Coupon links: {await seed_links(args.links)} created")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
