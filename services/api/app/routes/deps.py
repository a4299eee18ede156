"""Shared route dependencies.

Long-lived collaborators (caches, upstream client, coupon service) are
created by the app factory and stored on app.state; routes reach them
through these dependencies so tests can swap them via dependency_overrides.
"""

import secrets

from fastapi import Depends, Header, HTTPException, Request

from app.services.coupons import CouponService
from app.services.upstream_client import UpstreamClient
from app.services.user_id import UserIdClassifier
from app.settings import get_settings
from app.stores.memory import ExpiringCache


def get_route_cache(request: Request) -> ExpiringCache:
    return request.app.state.route_cache


def get_source_cache(request: Request) -> ExpiringCache:
    return request.app.state.source_cache


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def get_coupon_service(request: Request) -> CouponService:
    return request.app.state.coupons


def get_classifier(request: Request) -> UserIdClassifier:
    return request.app.state.classifier


def is_admin(x_admin_key: str | None = Header(default=None)) -> bool:
    """Whether the caller presented the configured admin key."""
    expected = get_settings().admin_api_key
    if not expected or not x_admin_key:
        return False
    return secrets.compare_digest(x_admin_key, expected)


def require_admin(admin: bool = Depends(is_admin)) -> None:
    if not admin:
        raise HTTPException(status_code=403, detail="Admin access required")
