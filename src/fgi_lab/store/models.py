"""Rows and query shapes for the result store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class RunMeta:
    run_id: str
    asset: str
    timeframe: str
    window_size_days: int = 0
    run_timestamp: Optional[datetime] = None

    def timestamp(self) -> datetime:
        return self.run_timestamp or datetime.now(timezone.utc)


@dataclass(frozen=True)
class RunFilters:
    asset: Optional[str] = None
    timeframe: Optional[str] = None
    strategy: Optional[str] = None
    run_id: Optional[str] = None
    leverage: Optional[int] = None
    window_index: Optional[int] = None
    min_trades: Optional[int] = None

    def where(self) -> tuple[str, list]:
        clauses: list[str] = []
        values: list = []
        for column in ("asset", "timeframe", "strategy", "run_id", "leverage", "window_index"):
            value = getattr(self, column)
            if value is not None:
                clauses.append(f"{column} = ?")
                values.append(value)
        if self.min_trades is not None:
            clauses.append("num_trades >= ?")
            values.append(self.min_trades)
        if not clauses:
            return "", values
        return " WHERE " + " AND ".join(clauses), values


@dataclass(frozen=True)
class PersistedRun:
    id: int
    run_id: str
    run_timestamp: str
    asset: str
    timeframe: str
    strategy: str
    window_index: Optional[int]
    window_start: Optional[str]
    window_end: Optional[str]
    window_size_days: int
    sample_count: Optional[int]
    leverage: int
    low_threshold: float
    high_threshold: float
    extreme_low_threshold: Optional[float]
    extreme_high_threshold: Optional[float]
    override_count: int
    final_balance: float
    total_return_pct: float
    gross_return_pct: float
    sharpe_ratio: float
    max_drawdown_pct: float
    num_trades: int
    win_rate_pct: float
    liquidation_count: int
    time_in_market_pct: float
    avg_trade_return_pct: float
    best_trade_pct: float
    worst_trade_pct: float
    volatility_pct: float
    fees_paid: float
    funding_paid: float
    time_in_long_pct: float
    time_in_short_pct: float
    time_in_neutral_pct: float


@dataclass(frozen=True)
class AggregateStats:
    total_records: int
    total_runs: int
    avg_return_pct: float
    max_return_pct: float
    min_return_pct: float
    avg_sharpe: float
    max_sharpe: float
    avg_drawdown_pct: float
    profitable_pct: float


@dataclass(frozen=True)
class AssetBest:
    asset: str
    best_return_pct: float
    strategy: str
    low_threshold: float
    high_threshold: float
    leverage: int


@dataclass(frozen=True)
class FilterOptions:
    assets: list[str]
    timeframes: list[str]
    strategies: list[str]
    leverages: list[int]
