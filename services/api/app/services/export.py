"""Export helpers for analytics downloads.

Supported export types:
- products: real-user product records (user ids masked for admins, hidden otherwise)
- coupons: per-coupon analytics
- coupon-links: coupon link rows

Rows are flat dicts; nested values are serialised as JSON in CSV output.
"""

import csv
import io
import json
from collections.abc import Sequence
from dataclasses import asdict
from datetime import date
from typing import Any

from pydantic import BaseModel

from app.services.analytics import display_user_id, filter_real_records
from app.services.upstream_client import ProductRecord
from app.services.user_id import UserIdClassifier, default_classifier

EXPORT_TYPES = ("products", "coupons", "coupon-links")

_FILENAME_PREFIXES = {
    "products": "product_records",
    "coupons": "coupon_analytics",
    "coupon-links": "coupon_links",
}


def export_filename(export_type: str, fmt: str, today: date | None = None) -> str:
    """Build the download filename, e.g. product_records_2026-10-18.csv."""
    day = (today or date.today()).isoformat()
    return f"{_FILENAME_PREFIXES[export_type]}_{day}.{fmt}"


def product_rows(
    records: Sequence[ProductRecord],
    reveal: bool,
    classifier: UserIdClassifier = default_classifier,
) -> list[dict[str, Any]]:
    """Real-user records as flat rows."""
    rows = []
    for record in filter_real_records(records, classifier):
        row = asdict(record)
        row["user_id"] = display_user_id(record.user_id, reveal, classifier)
        rows.append(row)
    return rows


def model_rows(items: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def to_csv(rows: Sequence[dict[str, Any]]) -> str:
    """Render rows as CSV.

    Columns come from the first row. Empty input gives an empty string.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
    return buffer.getvalue()
