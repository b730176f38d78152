import json
import threading
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fgi_lab.cache import DirectoryBackend, InMemoryBackend, ResultCache, cache_key, settings_fingerprint
from fgi_lab.cache.models import EPHEMERAL
from fgi_lab.simulator import DateRange, Sample, SimulationParameters, SimulationSettings, StrategyMode, simulate

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _series():
    prices = [100, 102, 97, 105, 110, 104, 99, 95, 101, 108]
    sentiments = [25, 40, 75, 82, 60, 35, 20, 15, 55, 78]
    return [
        Sample(timestamp=START + timedelta(days=day), price=Decimal(price), sentiment=score)
        for day, (price, score) in enumerate(zip(prices, sentiments))
    ]


def _params(**overrides):
    values = dict(
        asset="BTC",
        timeframe="1d",
        strategy_mode=StrategyMode.MOMENTUM,
        low_threshold=30,
        high_threshold=70,
        leverage=2,
    )
    values.update(overrides)
    return SimulationParameters(**values)


def test_cache_key_format():
    assert cache_key(_params()) == "BTC-1d-2x-30-70-0-100-momentum"
    assert cache_key(_params(low_threshold=30.0)) == cache_key(_params())
    pinned = _params(date_range=DateRange(date(2024, 1, 3), date(2024, 1, 6)))
    assert cache_key(pinned) == "BTC-1d-2x-30-70-0-100-momentum-2024-01-03-2024-01-06"


def test_set_then_get_until_stale():
    clock = _Clock()
    cache = ResultCache(clock=clock)
    result = simulate(_series(), _params())

    cache.set(_params(), result)
    assert cache.get(_params()) == result

    clock.advance(hours=24, seconds=1)
    assert cache.get(_params()) is None


def test_permanent_entry_never_goes_stale():
    clock = _Clock()
    cache = ResultCache(clock=clock)
    result = simulate(_series(), _params())

    cache.set(_params(), result, permanent=True)
    clock.advance(days=30)

    assert cache.get(_params()) == result


def test_run_and_cache_computes_once():
    cache = ResultCache(series_provider=lambda params: _series())

    first = cache.run_and_cache(_params())
    second = cache.run_and_cache(_params())

    assert first == second
    stats = cache.stats()
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.hit_rate == pytest.approx(50.0)
    assert stats.total_entries == 1
    assert stats.permanent_entries == 0


def test_run_and_cache_without_series_fails():
    with pytest.raises(ValueError):
        ResultCache().run_and_cache(_params())


def test_pinned_date_range_is_permanent_and_sliced():
    series = _series()
    params = _params(date_range=DateRange(date(2024, 1, 3), date(2024, 1, 6)))
    cache = ResultCache()

    result = cache.run_and_cache(params, series=series)

    assert result == simulate(series[2:6], params)
    assert cache.stats().permanent_entries == 1


def test_concurrent_misses_compute_once():
    calls = []
    lock = threading.Lock()

    def provider(params):
        with lock:
            calls.append(params)
        time.sleep(0.01)
        return _series()

    cache = ResultCache(series_provider=provider)
    results = []

    def worker():
        results.append(cache.run_and_cache(_params()))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(result == results[0] for result in results)
    stats = cache.stats()
    assert stats.misses == 1
    assert stats.hits == 7
    assert stats.hit_rate == pytest.approx(87.5)
    assert cache._key_locks == {}


def test_directory_backend_layout(tmp_path):
    cache = ResultCache(DirectoryBackend(tmp_path))
    result = simulate(_series(), _params())

    cache.set(_params(), result)
    cache.set(_params(leverage=3), result, permanent=True)

    key = cache_key(_params())
    payload = json.loads((tmp_path / f"{key}.json").read_text(encoding="utf-8"))
    assert payload["key"] == key
    assert payload["is_permanent"] is False
    assert set(payload) >= {"key", "result", "computed_at", "is_permanent", "access_count", "last_accessed"}
    assert (tmp_path / "permanent" / f"{cache_key(_params(leverage=3))}.json").exists()

    reopened = ResultCache(DirectoryBackend(tmp_path))
    assert reopened.get(_params()) == result


def test_corrupt_entry_degrades_to_miss(tmp_path, caplog):
    cache = ResultCache(DirectoryBackend(tmp_path), series_provider=lambda params: _series())
    (tmp_path / f"{cache_key(_params())}.json").write_text("{not json", encoding="utf-8")

    assert cache.get(_params()) is None
    assert "treating as miss" in caplog.text
    assert cache.run_and_cache(_params()) == simulate(_series(), _params())


def test_clean_stale_only_touches_ephemeral():
    clock = _Clock()
    backend = InMemoryBackend()
    cache = ResultCache(backend, clock=clock)
    result = simulate(_series(), _params())

    cache.set(_params(), result)
    cache.set(_params(leverage=3), result, permanent=True)
    clock.advance(hours=25)
    cache.set(_params(leverage=4), result)

    assert cache.clean_stale() == 1
    assert cache.stats().total_entries == 2


def test_entries_for_asset_and_delete():
    cache = ResultCache()
    result = simulate(_series(), _params())
    cache.set(_params(), result)
    cache.set(_params(leverage=3), result, permanent=True)
    cache.set(_params(asset="ETH"), result)

    assert len(cache.entries_for("BTC", "1d")) == 2
    assert cache.delete(_params(leverage=3)) is True
    assert cache.delete(_params(leverage=3)) is False
    assert len(cache.entries_for("BTC", "1d")) == 1


def test_settings_fingerprint_tracks_values():
    assert settings_fingerprint(SimulationSettings()) == settings_fingerprint(
        SimulationSettings(fee_rate=Decimal("0.0010"))
    )
    assert settings_fingerprint(SimulationSettings()) != settings_fingerprint(
        SimulationSettings(fee_rate=Decimal("0.01"))
    )


def test_changed_settings_ignore_permanent_entry(tmp_path):
    series = _series()
    params = _params(date_range=DateRange(date(2024, 1, 2), date(2024, 1, 9)))
    cheap = SimulationSettings(fee_rate=Decimal("0.001"))
    costly = SimulationSettings(fee_rate=Decimal("0.01"))

    first = ResultCache(DirectoryBackend(tmp_path), settings=cheap).run_and_cache(params, series=series)
    reopened = ResultCache(DirectoryBackend(tmp_path), settings=costly)

    assert reopened.get(params) is None
    result = reopened.run_and_cache(params, series=series)
    assert result == simulate(series[1:9], params, costly)
    assert result.fees_paid != first.fees_paid
    assert reopened.get(params) == result


def test_concurrent_hits_count_every_access():
    backend = InMemoryBackend()
    cache = ResultCache(backend)
    cache.set(_params(), simulate(_series(), _params()))

    def worker():
        for _ in range(25):
            cache.get(_params())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert backend.get(EPHEMERAL, cache_key(_params())).access_count == 200
    assert cache.stats().hits == 200
