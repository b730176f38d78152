"""Durable storage of simulation runs."""

from fgi_lab.store.errors import StoreWriteError
from fgi_lab.store.models import AggregateStats, AssetBest, FilterOptions, PersistedRun, RunFilters, RunMeta
from fgi_lab.store.result_store import RANKABLE_METRICS, ResultStore

__all__ = [
    "AggregateStats",
    "AssetBest",
    "FilterOptions",
    "PersistedRun",
    "RANKABLE_METRICS",
    "ResultStore",
    "RunFilters",
    "RunMeta",
    "StoreWriteError",
]
