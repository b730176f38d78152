"""Configuration models for reproducible runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fgi_lab.simulator.models import SimulationSettings, StrategyMode
from fgi_lab.sweep.models import ExecutorKind, ParameterRange, SweepObjective, SweepRanges


def _default_ranges() -> SweepRanges:
    return SweepRanges(
        low=ParameterRange(20, 40, 5),
        high=ParameterRange(60, 80, 5),
        leverage=(1, 2, 3),
    )


@dataclass(frozen=True)
class SweepConfig:
    max_workers: int = 4
    executor: ExecutorKind = ExecutorKind.PROCESS
    window_days: int = 30
    objective: SweepObjective = SweepObjective.TOTAL_RETURN
    deadline_seconds: Optional[float] = None
    ranges: SweepRanges = field(default_factory=_default_ranges)


@dataclass(frozen=True)
class CacheConfig:
    backend: str = "memory"
    directory: str = ".cache/backtests"
    stale_after_hours: float = 24.0


@dataclass(frozen=True)
class StoreConfig:
    path: str = "results/rolling_backtests.db"
    write_attempts: int = 3
    retry_backoff_seconds: float = 0.1
    busy_timeout_ms: int = 5000


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    path: Optional[str] = None


@dataclass(frozen=True)
class LabConfig:
    name: str
    version: str
    run_id_prefix: str
    asset: str
    timeframe: str
    strategy_mode: StrategyMode = StrategyMode.MOMENTUM
    series_path: Optional[str] = None
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
