from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fgi_lab.simulator import InvalidInputError, Sample, generate_windows

START = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _series(offsets, step=timedelta(days=1)):
    return [Sample(timestamp=START + step * offset, price=Decimal("100"), sentiment=50) for offset in offsets]


def test_window_count_matches_span():
    series = _series(range(10))

    windows = generate_windows(series, 3)

    assert len(windows) == 10 - 3 + 1
    assert [window.index for window in windows] == list(range(8))
    assert all(window.sample_count == 3 for window in windows)
    assert windows[0].start_timestamp == START
    assert windows[-1].end_timestamp == START + timedelta(days=9)


def test_window_slices_match_timestamps():
    series = _series(range(48), step=timedelta(hours=1))

    windows = generate_windows(series, 1)

    assert len(windows) == 2
    first, second = windows
    assert first.sample_count == 24
    assert second.sample_count == 24
    assert first.slice(series) == series[:24]
    assert second.slice(series)[0].timestamp == START + timedelta(days=1)


def test_sparse_windows_are_skipped_but_keep_their_index():
    series = _series([0, 1, 5, 6])

    windows = generate_windows(series, 2)

    assert [window.index for window in windows] == [0, 5]
    assert all(window.sample_count >= 2 for window in windows)


def test_window_longer_than_series():
    assert generate_windows(_series(range(5)), 30) == []


def test_empty_series_has_no_windows():
    assert generate_windows([], 7) == []


def test_window_days_must_be_positive():
    with pytest.raises(InvalidInputError):
        generate_windows(_series(range(5)), 0)
