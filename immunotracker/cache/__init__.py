"""Cache tiers for static assets, API responses and offline snapshots."""

from .tiers import CacheStorage, CacheTier

__all__ = ["CacheStorage", "CacheTier"]
