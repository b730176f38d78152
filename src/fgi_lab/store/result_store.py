"""SQLite store retaining every simulation run for top-K and aggregate queries."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from fgi_lab.simulator.models import SimulationResult
from fgi_lab.store.errors import StoreWriteError
from fgi_lab.store.models import AggregateStats, AssetBest, FilterOptions, PersistedRun, RunFilters, RunMeta

if TYPE_CHECKING:
    from fgi_lab.config.models import StoreConfig

LOG = logging.getLogger(__name__)

TABLE = "rolling_backtests"

COLUMNS = (
    "run_id",
    "run_timestamp",
    "asset",
    "timeframe",
    "strategy",
    "window_index",
    "window_start",
    "window_end",
    "window_size_days",
    "sample_count",
    "leverage",
    "low_threshold",
    "high_threshold",
    "extreme_low_threshold",
    "extreme_high_threshold",
    "override_count",
    "final_balance",
    "total_return_pct",
    "gross_return_pct",
    "sharpe_ratio",
    "max_drawdown_pct",
    "num_trades",
    "win_rate_pct",
    "liquidation_count",
    "time_in_market_pct",
    "avg_trade_return_pct",
    "best_trade_pct",
    "worst_trade_pct",
    "volatility_pct",
    "fees_paid",
    "funding_paid",
    "time_in_long_pct",
    "time_in_short_pct",
    "time_in_neutral_pct",
)

# column -> sort direction for "top" queries
RANKABLE_METRICS = {
    "total_return_pct": "DESC",
    "gross_return_pct": "DESC",
    "sharpe_ratio": "DESC",
    "win_rate_pct": "DESC",
    "final_balance": "DESC",
    "avg_trade_return_pct": "DESC",
    "max_drawdown_pct": "ASC",
    "volatility_pct": "ASC",
}

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    run_timestamp TEXT NOT NULL,
    asset TEXT NOT NULL,
    timeframe TEXT NOT NULL,
    strategy TEXT NOT NULL,
    window_index INTEGER,
    window_start TEXT,
    window_end TEXT,
    window_size_days INTEGER NOT NULL,
    sample_count INTEGER,
    leverage INTEGER NOT NULL,
    low_threshold REAL NOT NULL,
    high_threshold REAL NOT NULL,
    extreme_low_threshold REAL,
    extreme_high_threshold REAL,
    override_count INTEGER NOT NULL,
    final_balance REAL NOT NULL,
    total_return_pct REAL NOT NULL,
    gross_return_pct REAL NOT NULL,
    sharpe_ratio REAL NOT NULL,
    max_drawdown_pct REAL NOT NULL,
    num_trades INTEGER NOT NULL,
    win_rate_pct REAL NOT NULL,
    liquidation_count INTEGER NOT NULL,
    time_in_market_pct REAL NOT NULL,
    avg_trade_return_pct REAL,
    best_trade_pct REAL,
    worst_trade_pct REAL,
    volatility_pct REAL,
    fees_paid REAL,
    funding_paid REAL,
    time_in_long_pct REAL,
    time_in_short_pct REAL,
    time_in_neutral_pct REAL
)
"""

_INDICES = (
    f"CREATE INDEX IF NOT EXISTS idx_runs_run ON {TABLE} (run_id)",
    f"CREATE INDEX IF NOT EXISTS idx_runs_window ON {TABLE} (asset, timeframe, strategy, window_index)",
    f"CREATE INDEX IF NOT EXISTS idx_runs_params ON {TABLE} (low_threshold, high_threshold, leverage)",
    f"CREATE INDEX IF NOT EXISTS idx_runs_returns ON {TABLE} (total_return_pct DESC)",
    f"CREATE INDEX IF NOT EXISTS idx_runs_sharpe ON {TABLE} (sharpe_ratio DESC)",
)

_INSERT = f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)})"
_SELECT = f"SELECT id, {', '.join(COLUMNS)} FROM {TABLE}"


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)


class ResultStore:
    """Append-only run table; each ``persist`` call commits as one transaction.

    Connections are kept per thread. Rows from a batch that could not be
    committed stay in ``pending`` and go out with the next write.
    """

    def __init__(
        self,
        path: str | Path,
        write_attempts: int = 3,
        retry_backoff_seconds: float = 0.1,
        busy_timeout_ms: int = 5000,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.path = Path(path)
        self.write_attempts = max(1, int(write_attempts))
        self.retry_backoff_seconds = retry_backoff_seconds
        self.busy_timeout_ms = busy_timeout_ms
        self._sleep = sleep
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._pending: list[tuple] = []
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn()

    @classmethod
    def from_config(cls, config: "StoreConfig") -> "ResultStore":
        return cls(
            config.path,
            write_attempts=config.write_attempts,
            retry_backoff_seconds=config.retry_backoff_seconds,
            busy_timeout_ms=config.busy_timeout_ms,
        )

    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.path, timeout=self.busy_timeout_ms / 1000)
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            conn.execute(_SCHEMA)
            for statement in _INDICES:
                conn.execute(statement)
            conn.commit()
            self._local.conn = conn
        return conn

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def persist(self, meta: RunMeta, results: Iterable[SimulationResult]) -> int:
        """Write ``results`` (plus anything pending) in one transaction; returns rows written."""
        # shared by every row of the batch
        stamp = meta.timestamp().isoformat()
        rows = [self._row(meta, stamp, result) for result in results]
        with self._write_lock:
            self._pending.extend(rows)
            return self._flush_locked()

    def flush_pending(self) -> int:
        with self._write_lock:
            return self._flush_locked()

    def _flush_locked(self) -> int:
        if not self._pending:
            return 0
        batch = list(self._pending)
        last_error: Optional[sqlite3.Error] = None
        for attempt in range(1, self.write_attempts + 1):
            try:
                self._write(batch)
            except sqlite3.Error as exc:
                last_error = exc
                if attempt < self.write_attempts:
                    LOG.warning(
                        "Store write attempt %d/%d failed (%d rows): %s",
                        attempt,
                        self.write_attempts,
                        len(batch),
                        exc,
                    )
                    self._sleep(self.retry_backoff_seconds * attempt)
                continue
            del self._pending[: len(batch)]
            LOG.info("Committed %d rows to %s", len(batch), self.path.name)
            return len(batch)

        LOG.error("Store write failed after %d attempts; %d rows pending", self.write_attempts, len(batch))
        raise StoreWriteError(
            f"Could not write {len(batch)} rows after {self.write_attempts} attempts",
            pending=len(self._pending),
        ) from last_error

    def _write(self, rows: list[tuple]) -> None:
        conn = self._conn()
        with conn:
            conn.executemany(_INSERT, rows)

    @staticmethod
    def _row(meta: RunMeta, stamp: str, result: SimulationResult) -> tuple:
        params = result.params
        window = result.window
        return (
            meta.run_id,
            stamp,
            params.asset,
            params.timeframe,
            params.strategy_mode.value,
            window.index if window else None,
            window.start_timestamp.isoformat() if window else None,
            window.end_timestamp.isoformat() if window else None,
            meta.window_size_days,
            window.sample_count if window else None,
            params.leverage,
            float(params.low_threshold),
            float(params.high_threshold),
            _optional_float(params.extreme_low_threshold),
            _optional_float(params.extreme_high_threshold),
            result.override_activations,
            float(result.final_balance),
            result.total_return_pct,
            result.gross_return_pct,
            result.sharpe_ratio,
            result.max_drawdown_pct,
            result.num_trades,
            result.win_rate_pct,
            result.liquidation_count,
            result.time_in_market_pct,
            result.avg_trade_return_pct,
            result.best_trade_pct,
            result.worst_trade_pct,
            result.volatility_pct,
            float(result.fees_paid),
            float(result.funding_paid),
            result.time_in_long_pct,
            result.time_in_short_pct,
            result.time_in_neutral_pct,
        )

    def query_top(
        self,
        metric: str = "total_return_pct",
        limit: int = 10,
        filters: Optional[RunFilters] = None,
    ) -> list[PersistedRun]:
        direction = RANKABLE_METRICS.get(metric)
        if direction is None:
            raise ValueError(f"Unsupported metric: {metric}")
        where, values = (filters or RunFilters()).where()
        sql = (
            f"{_SELECT}{where} "
            f"ORDER BY {metric} {direction}, max_drawdown_pct ASC, liquidation_count ASC, id ASC LIMIT ?"
        )
        rows = self._conn().execute(sql, (*values, int(limit))).fetchall()
        return [PersistedRun(*row) for row in rows]

    def query_stats(self, filters: Optional[RunFilters] = None) -> AggregateStats:
        where, values = (filters or RunFilters()).where()
        row = self._conn().execute(
            f"""
            SELECT
                COUNT(*),
                COUNT(DISTINCT run_id),
                AVG(total_return_pct),
                MAX(total_return_pct),
                MIN(total_return_pct),
                AVG(sharpe_ratio),
                MAX(sharpe_ratio),
                AVG(max_drawdown_pct),
                SUM(CASE WHEN total_return_pct > 0 THEN 1 ELSE 0 END) * 100.0 / COUNT(*)
            FROM {TABLE}{where}
            """,
            values,
        ).fetchone()
        return AggregateStats(
            total_records=int(row[0]),
            total_runs=int(row[1]),
            avg_return_pct=float(row[2] or 0.0),
            max_return_pct=float(row[3] or 0.0),
            min_return_pct=float(row[4] or 0.0),
            avg_sharpe=float(row[5] or 0.0),
            max_sharpe=float(row[6] or 0.0),
            avg_drawdown_pct=float(row[7] or 0.0),
            profitable_pct=float(row[8] or 0.0),
        )

    def query_params(
        self,
        asset: str,
        low_threshold: float,
        high_threshold: float,
        leverage: int,
        strategy: Optional[str] = None,
    ) -> Optional[PersistedRun]:
        """Most recently written row for an exact parameter set."""
        sql = f"{_SELECT} WHERE asset = ? AND low_threshold = ? AND high_threshold = ? AND leverage = ?"
        values: list = [asset, float(low_threshold), float(high_threshold), int(leverage)]
        if strategy is not None:
            sql += " AND strategy = ?"
            values.append(strategy)
        row = self._conn().execute(sql + " ORDER BY id DESC LIMIT 1", values).fetchone()
        if not row:
            return None
        return PersistedRun(*row)

    def best_per_asset(self, filters: Optional[RunFilters] = None) -> list[AssetBest]:
        where, values = (filters or RunFilters()).where()
        # sqlite fills the bare columns from the row holding MAX()
        rows = self._conn().execute(
            f"""
            SELECT asset, MAX(total_return_pct) AS best_return, strategy,
                   low_threshold, high_threshold, leverage
            FROM {TABLE}{where}
            GROUP BY asset
            ORDER BY best_return DESC
            """,
            values,
        ).fetchall()
        return [
            AssetBest(
                asset=row[0],
                best_return_pct=float(row[1]),
                strategy=row[2],
                low_threshold=float(row[3]),
                high_threshold=float(row[4]),
                leverage=int(row[5]),
            )
            for row in rows
        ]

    def filter_options(self) -> FilterOptions:
        conn = self._conn()

        def distinct(column: str) -> list:
            rows = conn.execute(f"SELECT DISTINCT {column} FROM {TABLE} ORDER BY {column}").fetchall()
            return [row[0] for row in rows]

        return FilterOptions(
            assets=distinct("asset"),
            timeframes=distinct("timeframe"),
            strategies=distinct("strategy"),
            leverages=[int(value) for value in distinct("leverage")],
        )

    def count(self, filters: Optional[RunFilters] = None) -> int:
        where, values = (filters or RunFilters()).where()
        row = self._conn().execute(f"SELECT COUNT(*) FROM {TABLE}{where}", values).fetchone()
        return int(row[0])

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        conn.close()
        self._local.conn = None
