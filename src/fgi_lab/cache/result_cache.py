"""Result cache with permanent/ephemeral partitions and single-flight computation."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Sequence

from fgi_lab.cache.backends import DirectoryBackend, InMemoryBackend, KeyValueBackend
from fgi_lab.cache.keys import cache_key, settings_fingerprint
from fgi_lab.cache.models import EPHEMERAL, PERMANENT, CacheEntry, CacheStats
from fgi_lab.cache.policy import EvictionPolicy, NeverExpire, TimeToLive
from fgi_lab.simulator.engine import StrategySimulator
from fgi_lab.simulator.models import Sample, SimulationParameters, SimulationResult, SimulationSettings

if TYPE_CHECKING:
    from fgi_lab.config.models import CacheConfig

LOG = logging.getLogger(__name__)

SeriesProvider = Callable[[SimulationParameters], Sequence[Sample]]

# errors a backend may raise for an unreadable or unwritable entry
BACKEND_ERRORS = (OSError, ValueError, KeyError, TypeError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class _KeyLock:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ResultCache:
    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        settings: Optional[SimulationSettings] = None,
        series_provider: Optional[SeriesProvider] = None,
        stale_after: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.backend = backend or InMemoryBackend()
        self.simulator = StrategySimulator(settings or SimulationSettings())
        self.settings_hash = settings_fingerprint(self.simulator.settings)
        self.series_provider = series_provider
        self.ttl = TimeToLive(stale_after)
        self.never_expire = NeverExpire()
        self.clock = clock

        self._locks_guard = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}
        self._stats_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._hit_ms = 0.0
        self._computations = 0
        self._compute_ms = 0.0

    @classmethod
    def from_config(
        cls,
        config: "CacheConfig",
        settings: Optional[SimulationSettings] = None,
        series_provider: Optional[SeriesProvider] = None,
    ) -> "ResultCache":
        if config.backend == "directory":
            backend: KeyValueBackend = DirectoryBackend(config.directory)
        else:
            backend = InMemoryBackend()
        return cls(
            backend,
            settings=settings,
            series_provider=series_provider,
            stale_after=timedelta(hours=config.stale_after_hours),
        )

    def policy_for(self, entry: CacheEntry) -> EvictionPolicy:
        return self.never_expire if entry.is_permanent else self.ttl

    def get(self, params: SimulationParameters) -> Optional[SimulationResult]:
        params.validate()
        started = time.perf_counter()
        result = self._lookup(cache_key(params))
        if result is None:
            self._record_miss()
        else:
            self._record_hit(started)
        return result

    def _record_hit(self, started: float) -> None:
        with self._stats_lock:
            self._hits += 1
            self._hit_ms += _elapsed_ms(started)

    def _record_miss(self) -> None:
        with self._stats_lock:
            self._misses += 1

    def _usable(self, entry: CacheEntry, now: datetime) -> bool:
        if entry.settings_hash != self.settings_hash:
            LOG.info("Cache entry %s was computed under other settings", entry.key)
            return False
        if self.policy_for(entry).is_expired(entry, now):
            LOG.info("Cache stale for %s (age %.1fh)", entry.key, self.ttl.age_hours(entry, now))
            return False
        return True

    def _lookup(self, key: str) -> Optional[SimulationResult]:
        started = time.perf_counter()
        now = self.clock()
        for partition in (PERMANENT, EPHEMERAL):
            entry = self._read(partition, key)
            if entry is None or not self._usable(entry, now):
                continue
            self._touch(partition, key, now)
            LOG.debug("Cache hit (%s) for %s in %.2fms", partition, key, _elapsed_ms(started))
            return entry.result
        LOG.debug("Cache miss for %s", key)
        return None

    def _touch(self, partition: str, key: str, now: datetime) -> None:
        try:
            self.backend.touch(partition, key, now)
        except BACKEND_ERRORS as exc:
            LOG.warning("Cache access update failed for %s/%s: %s", partition, key, exc)

    def _read(self, partition: str, key: str) -> Optional[CacheEntry]:
        try:
            return self.backend.get(partition, key)
        except BACKEND_ERRORS as exc:
            LOG.warning("Cache read failed for %s/%s, treating as miss: %s", partition, key, exc)
            return None

    def _write(self, partition: str, entry: CacheEntry) -> bool:
        try:
            self.backend.set(partition, entry)
        except BACKEND_ERRORS as exc:
            LOG.warning("Cache write failed for %s/%s: %s", partition, entry.key, exc)
            return False
        return True

    def set(self, params: SimulationParameters, result: SimulationResult, permanent: bool = False) -> bool:
        params.validate()
        now = self.clock()
        entry = CacheEntry(
            key=cache_key(params),
            result=result,
            computed_at=now,
            is_permanent=permanent,
            access_count=0,
            last_accessed=now,
            settings_hash=self.settings_hash,
        )
        return self._write(entry.partition, entry)

    def run_and_cache(
        self,
        params: SimulationParameters,
        series: Optional[Sequence[Sample]] = None,
        permanent: bool = False,
    ) -> SimulationResult:
        """Return the cached result or simulate, cache and return it.

        Concurrent callers for the same key wait on one computation and count
        as hits once it lands. Results for a pinned date range are stored
        permanently.
        """
        params.validate()
        key = cache_key(params)
        started = time.perf_counter()
        cached = self._lookup(key)
        if cached is not None:
            self._record_hit(started)
            return cached

        with self._single_flight(key):
            cached = self._lookup(key)
            if cached is not None:
                self._record_hit(started)
                return cached
            self._record_miss()

            samples = self._series_for(params, series)
            computing = time.perf_counter()
            result = self.simulator.simulate(samples, params)
            elapsed = _elapsed_ms(computing)
            with self._stats_lock:
                self._computations += 1
                self._compute_ms += elapsed
            LOG.info("Computed %s in %.1fms", key, elapsed)

            self.set(params, result, permanent=permanent or params.date_range is not None)
            return result

    @contextmanager
    def _single_flight(self, key: str) -> Iterator[None]:
        # a key's lock lives only while someone holds or waits on it
        with self._locks_guard:
            slot = self._key_locks.get(key)
            if slot is None:
                slot = self._key_locks[key] = _KeyLock()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._locks_guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._key_locks[key]

    def _series_for(
        self,
        params: SimulationParameters,
        series: Optional[Sequence[Sample]],
    ) -> Sequence[Sample]:
        if series is None:
            if self.series_provider is None:
                raise ValueError(f"No series available for {cache_key(params)}")
            series = self.series_provider(params)
        if params.date_range is None:
            return series
        start, end = params.date_range.start, params.date_range.end
        return [sample for sample in series if start <= sample.timestamp.date() <= end]

    def delete(self, params: SimulationParameters) -> bool:
        key = cache_key(params)
        removed = False
        for partition in (PERMANENT, EPHEMERAL):
            try:
                removed = self.backend.delete(partition, key) or removed
            except OSError as exc:
                LOG.warning("Cache delete failed for %s/%s: %s", partition, key, exc)
        return removed

    def clean_stale(self) -> int:
        now = self.clock()
        removed = 0
        for key in self.backend.keys(EPHEMERAL):
            entry = self._read(EPHEMERAL, key)
            if entry is None or not self.ttl.is_expired(entry, now):
                continue
            if self.backend.delete(EPHEMERAL, key):
                removed += 1
        if removed:
            LOG.info("Removed %d stale cache entries", removed)
        return removed

    def entries_for(self, asset: str, timeframe: str) -> list[SimulationResult]:
        """Fresh cached results for one asset and timeframe."""
        prefix = f"{asset}-{timeframe}-"
        now = self.clock()
        results: list[SimulationResult] = []
        for partition in (PERMANENT, EPHEMERAL):
            for key in self.backend.keys(partition):
                if not key.startswith(prefix):
                    continue
                entry = self._read(partition, key)
                if entry is None or not self._usable(entry, now):
                    continue
                results.append(entry.result)
        return results

    def stats(self) -> CacheStats:
        permanent = len(self.backend.keys(PERMANENT))
        ephemeral = len(self.backend.keys(EPHEMERAL))
        with self._stats_lock:
            lookups = self._hits + self._misses
            return CacheStats(
                total_entries=permanent + ephemeral,
                permanent_entries=permanent,
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / lookups * 100 if lookups else 0.0,
                avg_compute_ms=self._compute_ms / self._computations if self._computations else 0.0,
                avg_hit_ms=self._hit_ms / self._hits if self._hits else 0.0,
            )
