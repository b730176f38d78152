"""Series loader adapters: CSV files and price/sentiment joins."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from fgi_lab.simulator.models import Number, Sample


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    price: Decimal


@dataclass(frozen=True)
class SentimentPoint:
    timestamp: datetime
    score: Number


def _parse_ts(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw.replace("Z", "+00:00")
    value = datetime.fromisoformat(raw)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_sample(row: dict) -> Optional[Sample]:
    time_raw = row.get("timestamp") or row.get("time") or row.get("date")
    price_raw = row.get("price") or row.get("close")
    score_raw = row.get("fgi") or row.get("cfgi") or row.get("sentiment")
    if not time_raw or not price_raw or score_raw in (None, ""):
        return None
    return Sample(
        timestamp=_parse_ts(time_raw),
        price=Decimal(price_raw),
        sentiment=float(score_raw),
    )


def load_samples_csv(path: str | Path) -> list[Sample]:
    """Read ``timestamp,price,fgi`` rows, sorted and de-duplicated by timestamp."""
    samples: dict[datetime, Sample] = {}
    with Path(path).open("r", encoding="utf-8", newline="") as handle:
        for row in csv.DictReader(handle):
            sample = _parse_sample(row)
            if sample is not None:
                samples[sample.timestamp] = sample
    return [samples[key] for key in sorted(samples)]


def merge_series(prices: Iterable[PricePoint], sentiments: Iterable[SentimentPoint]) -> list[Sample]:
    """Keep only the timestamps present in both feeds."""
    scores = {point.timestamp: point.score for point in sentiments}
    merged: dict[datetime, Sample] = {}
    for point in prices:
        if point.timestamp not in scores:
            continue
        merged[point.timestamp] = Sample(
            timestamp=point.timestamp,
            price=point.price,
            sentiment=scores[point.timestamp],
        )
    return [merged[key] for key in sorted(merged)]
