"""Search-source parsing for product scan records.

The product API stores a loosely delimited status string per lookup in
`search_source`, e.g.:

    amazon_name-->Sony WH-1000XM4, flipkart_name-->Sony Headphones,
    image_url, Hardline, Flipkart Cheaper, Best: Flipkart - Savings: ₹2,500, SUCCESS

No grammar is guaranteed by the producer, so each field is extracted by its
own pass over the raw string. A pass that finds nothing (or fails) leaves
its field at the default; the other passes are unaffected.

Extracts:
- amazon / flipkart / concise product names
- input type (image, text, amazon url, flipkart url)
- category (hardline, softline)
- "X Cheaper" platform flags
- best platform + savings amount
- status (success, error, failed)
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TypeVar

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


class InputType(str, Enum):
    """How the user submitted the lookup."""

    IMAGE = "image"
    TEXT = "text"
    AMAZON_URL = "amazon_url"
    FLIPKART_URL = "flipkart_url"
    UNSET = "unset"


class ProductCategory(str, Enum):
    """Merchandise category reported by the scanner."""

    HARDLINE = "hardline"
    SOFTLINE = "softline"
    UNSET = "unset"


class SearchStatus(str, Enum):
    """Outcome of the lookup."""

    SUCCESS = "success"
    ERROR = "error"
    FAILED = "failed"
    UNSET = "unset"


@dataclass(frozen=True)
class ParsedSourceInfo:
    """Fields extracted from one search_source string."""

    amazon_name: str = ""
    flipkart_name: str = ""
    concise_name: str = ""
    input_type: InputType = InputType.UNSET
    category: ProductCategory = ProductCategory.UNSET
    is_hardline: bool = False
    is_softline: bool = False
    is_flipkart_cheaper: bool = False
    is_amazon_cheaper: bool = False
    best_platform: str = ""
    savings_amount: int = 0
    status: SearchStatus = SearchStatus.UNSET


# ============================================================
# Patterns
# ============================================================

_AMAZON_NAME_PATTERN = re.compile(r"amazon_name-->([^,]*)")
_FLIPKART_NAME_PATTERN = re.compile(r"flipkart_name-->([^,]*)")
# First character is always taken, then stop at the next capital letter or comma.
_CONCISE_NAME_PATTERN = re.compile(r"concise_name-->\s*([^,][^A-Z,]*)")

_BEST_SAVINGS_PATTERN = re.compile(r"Best:\s*([^,]+?)\s*-\s*Savings:\s*₹\s*(\d[\d,]*)")

# Substring markers, first match wins (order matters)
_INPUT_TYPE_MARKERS: list[tuple[str, InputType]] = [
    ("image_url", InputType.IMAGE),
    ("Text", InputType.TEXT),
    ("amazon_url", InputType.AMAZON_URL),
    ("flipkart_url", InputType.FLIPKART_URL),
]

_STATUS_MARKERS: list[tuple[str, SearchStatus]] = [
    ("SUCCESS", SearchStatus.SUCCESS),
    ("ERROR", SearchStatus.ERROR),
    ("FAILED", SearchStatus.FAILED),
]


# ============================================================
# Extraction passes
# ============================================================


def _run_pass(name: str, extract: Callable[[str], T], raw: str, default: T) -> T:
    """Run one extraction pass; any failure means "field not found"."""
    try:
        return extract(raw)
    except Exception as e:
        logger.debug(f"search_source pass {name} failed: {e!r}")
        return default


def extract_keyed_name(raw: str, pattern: re.Pattern[str]) -> str:
    """Extract the text following a `<key>-->` marker.

    Args:
        raw: Raw search_source string.
        pattern: One of the keyed-name patterns.

    Returns:
        Trimmed value or "" if the marker is absent.
    """
    match = pattern.search(raw)
    return match.group(1).strip() if match else ""


def extract_input_type(raw: str) -> InputType:
    for marker, input_type in _INPUT_TYPE_MARKERS:
        if marker in raw:
            return input_type
    return InputType.UNSET


def extract_category(raw: str) -> ProductCategory:
    # Hardline is checked first and wins if both markers are present.
    if "Hardline" in raw:
        return ProductCategory.HARDLINE
    if "Softline" in raw:
        return ProductCategory.SOFTLINE
    return ProductCategory.UNSET


def extract_cheaper_flags(raw: str) -> tuple[bool, bool]:
    """Return (is_flipkart_cheaper, is_amazon_cheaper); both may be True."""
    return "Flipkart Cheaper" in raw, "Amazon Cheaper" in raw


def extract_best_platform(raw: str) -> tuple[str, int]:
    """Extract best platform and savings amount.

    Args:
        raw: Raw search_source string.

    Returns:
        (lower-cased platform, savings in whole rupees), or ("", 0) without a match.
    """
    match = _BEST_SAVINGS_PATTERN.search(raw)
    if not match:
        return "", 0
    platform = match.group(1).strip().lower()
    savings = int(match.group(2).replace(",", ""), 10)
    return platform, savings


def extract_status(raw: str) -> SearchStatus:
    for marker, status in _STATUS_MARKERS:
        if marker in raw:
            return status
    return SearchStatus.UNSET


# ============================================================
# Main parse function
# ============================================================


def parse_source_info(raw: Any) -> ParsedSourceInfo:
    """Parse a search_source string into structured fields.

    Never raises: None, non-strings and garbled input yield defaults.

    Args:
        raw: Raw search_source value from a product record.

    Returns:
        ParsedSourceInfo with every field found in the string.
    """
    if not isinstance(raw, str) or not raw:
        return ParsedSourceInfo()

    amazon_name = _run_pass("amazon_name", lambda s: extract_keyed_name(s, _AMAZON_NAME_PATTERN), raw, "")
    flipkart_name = _run_pass("flipkart_name", lambda s: extract_keyed_name(s, _FLIPKART_NAME_PATTERN), raw, "")
    concise_name = _run_pass("concise_name", lambda s: extract_keyed_name(s, _CONCISE_NAME_PATTERN), raw, "")
    input_type = _run_pass("input_type", extract_input_type, raw, InputType.UNSET)
    category = _run_pass("category", extract_category, raw, ProductCategory.UNSET)
    flipkart_cheaper, amazon_cheaper = _run_pass("cheaper_flags", extract_cheaper_flags, raw, (False, False))
    best_platform, savings = _run_pass("best_platform", extract_best_platform, raw, ("", 0))
    status = _run_pass("status", extract_status, raw, SearchStatus.UNSET)

    return ParsedSourceInfo(
        amazon_name=amazon_name,
        flipkart_name=flipkart_name,
        concise_name=concise_name,
        input_type=input_type,
        category=category,
        is_hardline=category is ProductCategory.HARDLINE,
        is_softline=category is ProductCategory.SOFTLINE,
        is_flipkart_cheaper=flipkart_cheaper,
        is_amazon_cheaper=amazon_cheaper,
        best_platform=best_platform,
        savings_amount=savings,
        status=status,
    )


def is_search_error(info: ParsedSourceInfo) -> bool:
    """Whether the parsed status reports a failed lookup."""
    return info.status in (SearchStatus.ERROR, SearchStatus.FAILED)
