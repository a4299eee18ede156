"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: coupon store session management
- Memory: expiring key/value caches injected into services and routes

No analytics logic in stores - that belongs in services.
"""
