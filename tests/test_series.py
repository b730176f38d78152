from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fgi_lab.simulator import PricePoint, SentimentPoint, load_samples_csv, merge_series

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_merge_keeps_common_timestamps_in_order():
    prices = [PricePoint(START + timedelta(hours=hour), Decimal(100 + hour)) for hour in (3, 0, 1, 2)]
    sentiments = [SentimentPoint(START + timedelta(hours=hour), 40 + hour) for hour in (0, 2, 3, 5)]

    merged = merge_series(prices, sentiments)

    assert [sample.timestamp for sample in merged] == [START + timedelta(hours=hour) for hour in (0, 2, 3)]
    assert [sample.price for sample in merged] == [Decimal(100), Decimal(102), Decimal(103)]
    assert [sample.sentiment for sample in merged] == [40, 42, 43]


def test_load_samples_csv(tmp_path):
    path = tmp_path / "eth.csv"
    path.write_text(
        "timestamp,price,fgi\n"
        "2024-01-02T00:00:00Z,2310.5,61\n"
        "2024-01-01T00:00:00Z,2290.25,48\n"
        "2024-01-01T00:00:00Z,2291.00,49\n"
        "2024-01-03T00:00:00,2335,\n",
        encoding="utf-8",
    )

    samples = load_samples_csv(path)

    assert [sample.timestamp.day for sample in samples] == [1, 2]
    assert samples[0].price == Decimal("2291.00")
    assert samples[0].sentiment == 49.0
    assert samples[1].timestamp.tzinfo is not None
