"""Fast-path cache for simulation results."""

from fgi_lab.cache.backends import DirectoryBackend, InMemoryBackend, KeyValueBackend
from fgi_lab.cache.keys import cache_key, settings_fingerprint
from fgi_lab.cache.models import CacheEntry, CacheStats
from fgi_lab.cache.policy import EvictionPolicy, NeverExpire, TimeToLive
from fgi_lab.cache.result_cache import ResultCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "DirectoryBackend",
    "EvictionPolicy",
    "InMemoryBackend",
    "KeyValueBackend",
    "NeverExpire",
    "ResultCache",
    "TimeToLive",
    "cache_key",
    "settings_fingerprint",
]
