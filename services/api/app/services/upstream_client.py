"""Client for the product-scan API and the QR scan counter.

Origins:
- Product API: GET {base}/get-records (scan records with search_source)
- Product API: GET {base}/get-records-feedback (user feedback)
- QR API: GET {base}/{qr_id} (scan counter)

Resilience rules:
- Every call has an explicit timeout and a bounded number of retries
- Results are cached in the injected source cache (TTL ~2 minutes);
  concurrent cold reads of one key share a single origin call
- On failure (including a malformed payload), fall back to the last cached
  value (even if expired), then to an empty / zero value. Callers never see origin exceptions.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import uuid4

import httpx

from app.settings import Settings, get_settings
from app.stores.memory import ExpiringCache

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")

USER_AGENT = "Scan-Insights-Analytics/1.0"

# Cache keys
KEY_PRODUCT_RECORDS = "product_records"
KEY_PRODUCT_FEEDBACK = "product_feedback"
PREFIX_QR_SCAN = "qr_scan_"


class UpstreamError(RuntimeError):
    """Origin call failed after all retries."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProductRecord:
    """Normalised record from the product API."""

    id: str
    user_id: str
    product_name: str
    product_price: float
    product_brand: str
    product_category: str
    search_source: str
    timestamp: str
    device_info: str


@dataclass
class FeedbackRecord:
    """Normalised record from the feedback API."""

    id: str
    user_id: str
    product_name: str
    rating: float
    comment: str
    timestamp: str


@dataclass
class QrScanData:
    """QR scan counter snapshot."""

    qr_scan_count: int
    timestamp: str = field(default_factory=_now_iso)
    error: str | None = None


@dataclass
class OriginHealth:
    """Result of probing one origin."""

    status: str
    response_time_ms: int | None = None
    error: str | None = None


class UpstreamClient:
    """Fetches raw collections from the external origins."""

    def __init__(
        self,
        cache: ExpiringCache,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            cache: Source cache shared with other data-access services.
            settings: Settings override (defaults to get_settings()).
            transport: httpx transport override (tests).
        """
        self.cache = cache
        self.settings = settings or get_settings()
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request_json(
        self,
        url: str,
        *,
        timeout: float,
        retries: int,
        method: str = "GET",
    ) -> Any:
        """Perform a request with timeout and retries.

        Args:
            url: Absolute URL.
            timeout: Per-attempt timeout in seconds.
            retries: Extra attempts after the first failure.
            method: HTTP method.

        Returns:
            Decoded JSON body (None for HEAD).

        Raises:
            UpstreamError: If every attempt failed.
        """
        client = await self._get_client()
        attempts = retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, url, timeout=timeout)
                response.raise_for_status()
                if method == "HEAD":
                    return None
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        f"Request to {url} failed ({e!r}), retrying ({attempts - attempt} left)"
                    )
                    await asyncio.sleep(self.settings.upstream_retry_delay)

        raise UpstreamError(f"{method} {url} failed after {attempts} attempts: {last_error!r}")

    # ============================================================
    # Product records
    # ============================================================

    async def _cached_fetch(self, key: str, loader: Callable[[], Awaitable[T]], use_cache: bool) -> T:
        """Serve key from the source cache, loading it at most once at a time."""
        if not use_cache:
            value = await loader()
            self.cache.set(key, value)
            return value
        return await self.cache.get_or_load(key, loader)

    async def _load_product_records(self) -> list[ProductRecord]:
        url = f"{self.settings.product_api_base_url.rstrip('/')}/get-records"
        logger.info("Product records cache MISS, calling product API")
        started = time.monotonic()

        data = await self._request_json(
            url,
            timeout=self.settings.product_api_timeout,
            retries=self.settings.product_api_retries,
        )
        if not isinstance(data, list):
            raise UpstreamError(f"Invalid product data format received: {type(data).__name__}")

        records = [
            normalize_product_record(item) for item in data if isinstance(item, dict)
        ][: self.settings.max_product_records]

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Fetched and validated {len(records)} product records in {elapsed_ms}ms")
        return records

    async def fetch_product_records(self, use_cache: bool = True) -> list[ProductRecord]:
        """Fetch scan records from the product API.

        Concurrent cold reads share one origin call.

        Args:
            use_cache: Whether to consult the source cache first.

        Returns:
            Normalised records (possibly empty).
        """
        try:
            return await self._cached_fetch(KEY_PRODUCT_RECORDS, self._load_product_records, use_cache)
        except UpstreamError as e:
            logger.error(f"Error fetching product records: {e}")
            stale = self.cache.get_stale(KEY_PRODUCT_RECORDS)
            if stale is not None:
                logger.warning("Returning expired cached product records due to API error")
                return stale
            return []

    async def _load_product_feedback(self) -> list[FeedbackRecord]:
        url = f"{self.settings.product_api_base_url.rstrip('/')}/get-records-feedback"
        data = await self._request_json(
            url,
            timeout=self.settings.product_api_timeout,
            retries=self.settings.product_api_retries,
        )
        if not isinstance(data, list):
            raise UpstreamError(f"Invalid feedback data format received: {type(data).__name__}")
        return [normalize_feedback_record(item) for item in data if isinstance(item, dict)]

    async def fetch_product_feedback(self, use_cache: bool = True) -> list[FeedbackRecord]:
        """Fetch user feedback records.

        Returns:
            Normalised feedback (possibly empty).
        """
        try:
            return await self._cached_fetch(KEY_PRODUCT_FEEDBACK, self._load_product_feedback, use_cache)
        except UpstreamError as e:
            logger.error(f"Error fetching product feedback: {e}")
            stale = self.cache.get_stale(KEY_PRODUCT_FEEDBACK)
            return stale if stale is not None else []

    # ============================================================
    # QR scans
    # ============================================================

    async def fetch_qr_scan_count(self, qr_id: str = "default", use_cache: bool = True) -> QrScanData:
        """Fetch the scan counter for a QR code.

        Args:
            qr_id: QR identifier; "default" maps to the configured campaign QR.
            use_cache: Whether to consult the source cache first.

        Returns:
            QrScanData; on failure carries count 0 (or the stale count) and an error.
        """
        key = f"{PREFIX_QR_SCAN}{qr_id}"
        resolved_id = self.settings.qr_default_id if qr_id == "default" else qr_id
        url = f"{self.settings.qr_api_base_url.rstrip('/')}/{resolved_id}"

        async def load() -> QrScanData:
            data = await self._request_json(
                url,
                timeout=self.settings.qr_api_timeout,
                retries=self.settings.qr_api_retries,
            )
            qr = QrScanData(qr_scan_count=extract_qr_count(data))
            logger.info(f"QR scan count for {qr_id}: {qr.qr_scan_count}")
            return qr

        try:
            return await self._cached_fetch(key, load, use_cache)
        except UpstreamError as e:
            logger.error(f"Error fetching QR scan count for {qr_id}: {e}")
            stale = self.cache.get_stale(key)
            if stale is not None:
                return QrScanData(qr_scan_count=stale.qr_scan_count, timestamp=stale.timestamp, error=str(e))
            return QrScanData(qr_scan_count=0, error=str(e))

    async def fetch_multiple_qr_scans(self, qr_ids: list[str]) -> dict[str, QrScanData]:
        """Fetch several QR counters, a bounded batch at a time.

        Each id goes through fetch_qr_scan_count, so per-id caching and
        fallbacks apply.

        Returns:
            Mapping qr_id -> QrScanData (failed ids carry count 0), in request order.
        """
        ids = list(dict.fromkeys(qr_ids))
        batch_size = self.settings.qr_batch_size
        results: dict[str, QrScanData] = {}
        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            scans = await asyncio.gather(*(self.fetch_qr_scan_count(qr_id) for qr_id in batch))
            results.update(zip(batch, scans))
            if start + batch_size < len(ids):
                await asyncio.sleep(0.1)
        return results

    # ============================================================
    # Health / warmup
    # ============================================================

    async def check_health(self) -> dict[str, OriginHealth]:
        """Check both origins once, without retries."""
        product_url = f"{self.settings.product_api_base_url.rstrip('/')}/get-records"
        qr_url = f"{self.settings.qr_api_base_url.rstrip('/')}/{self.settings.qr_default_id}"

        async def check(url: str, method: str) -> OriginHealth:
            started = time.monotonic()
            try:
                await self._request_json(url, timeout=5.0, retries=0, method=method)
            except UpstreamError as e:
                return OriginHealth(status="unhealthy", error=str(e))
            return OriginHealth(status="healthy", response_time_ms=int((time.monotonic() - started) * 1000))

        product, qr = await asyncio.gather(check(product_url, "HEAD"), check(qr_url, "GET"))
        return {"product_api": product, "qr_api": qr}

    async def prefetch(self) -> None:
        """Warm the source cache with the collections every dashboard needs."""
        logger.info("Prefetching critical data...")
        results = await asyncio.gather(
            self.fetch_product_records(),
            self.fetch_qr_scan_count("default"),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Prefetch step failed: {result!r}")


# ============================================================
# Normalisation helpers
# ============================================================


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_str(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


def normalize_product_record(item: dict[str, Any]) -> ProductRecord:
    """Fill defaults for missing fields of a raw product record."""
    return ProductRecord(
        id=_as_str(item.get("_id") or item.get("id"), uuid4().hex),
        user_id=_as_str(item.get("user_id"), ""),
        product_name=_as_str(item.get("product_name"), "Unknown Product"),
        product_price=_as_float(item.get("product_price")),
        product_brand=_as_str(item.get("product_brand"), "Unknown Brand"),
        product_category=_as_str(item.get("product_category"), "Unknown Category"),
        search_source=_as_str(item.get("search_source"), "Unknown Source"),
        timestamp=_as_str(item.get("timestamp"), _now_iso()),
        device_info=_as_str(item.get("device_info"), "Unknown Device"),
    )


def normalize_feedback_record(item: dict[str, Any]) -> FeedbackRecord:
    """Fill defaults for missing fields of a raw feedback record."""
    return FeedbackRecord(
        id=_as_str(item.get("_id") or item.get("id"), uuid4().hex),
        user_id=_as_str(item.get("user_id"), ""),
        product_name=_as_str(item.get("product_name"), "Unknown Product"),
        rating=_as_float(item.get("rating")),
        comment=_as_str(item.get("comment") or item.get("feedback"), ""),
        timestamp=_as_str(item.get("timestamp"), _now_iso()),
    )


def extract_qr_count(data: Any) -> int:
    """Read the scan count from the QR API payload.

    Tries qr_scan_count, scan_count, count in that order; negatives become 0.
    """
    if not isinstance(data, dict):
        return 0
    for field_name in ("qr_scan_count", "scan_count", "count"):
        try:
            count = int(data.get(field_name))
        except (TypeError, ValueError):
            continue
        if count:
            return max(count, 0)
    return 0
