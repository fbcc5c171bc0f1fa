"""Cache subsystem — parameter-addressed image entries on disk."""

from imgcache.cache.disk import DEFAULT_CACHE_PATH, DiskImageCache
from imgcache.cache.inflight import InFlightRegistry
from imgcache.cache.keys import derive_key, escape_component
from imgcache.cache.stats import CacheStats

__all__ = [
    "DEFAULT_CACHE_PATH",
    "DiskImageCache",
    "InFlightRegistry",
    "CacheStats",
    "derive_key",
    "escape_component",
]
