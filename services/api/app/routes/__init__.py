"""API routes."""

from fastapi import APIRouter

from app.routes import admin, analytics

api_router = APIRouter()

# Dashboard analytics
api_router.include_router(analytics.router, prefix="/v1/analytics", tags=["analytics"])

# Admin endpoints (cache, upstream management)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
