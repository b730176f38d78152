"""Rolling day-granular windows for walk-forward runs."""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

from fgi_lab.simulator.errors import InvalidInputError
from fgi_lab.simulator.models import Sample, Window

DAY = timedelta(days=1)
MIN_WINDOW_SAMPLES = 2


def generate_windows(series: Sequence[Sample], window_days: int) -> list[Window]:
    """Slice ``series`` into overlapping windows advancing one day at a time.

    Window ``k`` covers ``[first + k days, first + (k + window_days) days)``.
    Both slice bounds only move forward, so the whole series is walked once.
    Windows holding fewer than two samples are skipped, but keep their index.
    """
    if window_days < 1:
        raise InvalidInputError(f"window_days must be positive, got {window_days}")
    if not series:
        return []

    timestamps = [sample.timestamp for sample in series]
    first = timestamps[0]
    total_span_days = (timestamps[-1] - first) // DAY + 1
    total_windows = max(0, total_span_days - window_days + 1)

    windows: list[Window] = []
    start_idx = 0
    end_idx = 0
    count = len(timestamps)
    for index in range(total_windows):
        window_start = first + index * DAY
        window_end = window_start + window_days * DAY

        while start_idx < count and timestamps[start_idx] < window_start:
            start_idx += 1
        if start_idx >= count:
            break
        if end_idx < start_idx:
            end_idx = start_idx
        while end_idx < count and timestamps[end_idx] < window_end:
            end_idx += 1

        sample_count = end_idx - start_idx
        if sample_count < MIN_WINDOW_SAMPLES:
            continue

        windows.append(
            Window(
                index=index,
                start_timestamp=timestamps[start_idx],
                end_timestamp=timestamps[end_idx - 1],
                sample_count=sample_count,
                start_offset=start_idx,
                stop_offset=end_idx,
            )
        )
    return windows
