"""Cache module for endpoint response caching backed by durable storage."""

from .resource_cache import ResourceCache
from .models import CacheEntry
from .statistics import CacheStatistics

__all__ = ["ResourceCache", "CacheEntry", "CacheStatistics"]
