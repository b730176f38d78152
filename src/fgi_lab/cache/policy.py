"""Expiry policies for cache entries."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from fgi_lab.cache.models import CacheEntry


class EvictionPolicy(ABC):
    permanent: bool = False

    @abstractmethod
    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        raise NotImplementedError


class NeverExpire(EvictionPolicy):
    permanent = True

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return False


class TimeToLive(EvictionPolicy):
    def __init__(self, ttl: timedelta) -> None:
        self.ttl = ttl

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.computed_at > self.ttl

    def age_hours(self, entry: CacheEntry, now: datetime) -> float:
        return (now - entry.computed_at).total_seconds() / 3600
