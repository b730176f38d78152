"""Load and freeze configuration files."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml

from fgi_lab.config.models import CacheConfig, LabConfig, LoggingConfig, StoreConfig, SweepConfig
from fgi_lab.simulator.models import (
    FundingConvention,
    LiquidationRule,
    RoundingPolicy,
    SimulationSettings,
    StrategyMode,
)
from fgi_lab.sweep.models import ExecutorKind, ParameterRange, SweepObjective, SweepRanges

CACHE_BACKENDS = ("memory", "directory")


def load_config(path: str | Path) -> LabConfig:
    path = Path(path)
    data = _load_yaml(path)

    name = _require(data, "name")
    version = str(_require(data, "version"))
    run_id_prefix = data.get("run_id_prefix", name)
    asset = str(_require(data, "asset"))
    timeframe = str(_require(data, "timeframe"))
    series_path = data.get("series_path")

    return LabConfig(
        name=name,
        version=version,
        run_id_prefix=run_id_prefix,
        asset=asset,
        timeframe=timeframe,
        strategy_mode=_parse_enum(StrategyMode, data.get("strategy_mode", "momentum"), "strategy_mode"),
        series_path=str(series_path) if series_path is not None else None,
        simulation=_parse_simulation(data.get("simulation", {})),
        sweep=_parse_sweep(data.get("sweep", {})),
        cache=_parse_cache(data.get("cache", {})),
        store=_parse_store(data.get("store", {})),
        logging=_parse_logging(data.get("logging", {})),
    )


def compute_config_hash(path: str | Path) -> str:
    path = Path(path)
    content = path.read_bytes()
    return hashlib.sha256(content).hexdigest()


def _lock_path_for(path: Path, lock_path: Optional[str | Path]) -> Path:
    if lock_path is None:
        return path.with_suffix(path.suffix + ".lock.json")
    return Path(lock_path)


def freeze_config(path: str | Path, lock_path: Optional[str | Path] = None) -> Path:
    path = Path(path)
    lock_path = _lock_path_for(path, lock_path)
    payload = {
        "config_path": str(path),
        "config_hash": compute_config_hash(path),
        "frozen_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    lock_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return lock_path


def verify_config_lock(path: str | Path, lock_path: Optional[str | Path] = None) -> bool:
    path = Path(path)
    lock_path = _lock_path_for(path, lock_path)
    if not lock_path.exists():
        return False
    payload = json.loads(lock_path.read_text(encoding="utf-8"))
    return payload.get("config_hash") == compute_config_hash(path)


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Config must be a mapping")
    return data


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        raise ValueError(f"Missing required config key: {key}")
    return data[key]


def _parse_enum(enum_cls, value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {key}: {value}") from exc


def _decimal(data: dict[str, Any], key: str, default: Decimal) -> Decimal:
    value = data.get(key)
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid {key}: {value}") from exc


def _parse_simulation(data: dict[str, Any]) -> SimulationSettings:
    defaults = SimulationSettings()
    periods = data.get("periods_per_year")
    settings = SimulationSettings(
        initial_capital=_decimal(data, "initial_capital", defaults.initial_capital),
        fee_rate=_decimal(data, "fee_rate", defaults.fee_rate),
        funding_rate_per_bar=_decimal(data, "funding_rate_per_bar", defaults.funding_rate_per_bar),
        funding_convention=_parse_enum(
            FundingConvention, data.get("funding_convention", defaults.funding_convention.value), "funding_convention"
        ),
        position_fraction=_decimal(data, "position_fraction", defaults.position_fraction),
        min_balance_to_open=_decimal(data, "min_balance_to_open", defaults.min_balance_to_open),
        liquidation_rule=_parse_enum(
            LiquidationRule, data.get("liquidation_rule", defaults.liquidation_rule.value), "liquidation_rule"
        ),
        liquidation_threshold=_decimal(data, "liquidation_threshold", defaults.liquidation_threshold),
        liquidation_loss_fraction=_decimal(data, "liquidation_loss_fraction", defaults.liquidation_loss_fraction),
        rounding=_parse_enum(RoundingPolicy, data.get("rounding", defaults.rounding.value), "rounding"),
        settlement_places=int(data.get("settlement_places", defaults.settlement_places)),
        periods_per_year=float(periods) if periods is not None else None,
        record_trades=bool(data.get("record_trades", defaults.record_trades)),
    )
    if not Decimal("0") < settings.position_fraction <= Decimal("1"):
        raise ValueError(f"Invalid position_fraction: {settings.position_fraction}")
    return settings


def _parse_range(data: Any, key: str) -> ParameterRange:
    if isinstance(data, (int, float)):
        return ParameterRange.single(int(data))
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {key}: {data}")
    return ParameterRange(
        start=int(_require(data, "start")),
        end=int(_require(data, "end")),
        step=int(data.get("step", 1)),
    )


def _parse_ranges(data: dict[str, Any]) -> SweepRanges:
    if not data:
        return SweepConfig().ranges
    extreme_low = data.get("extreme_low")
    extreme_high = data.get("extreme_high")
    leverage = data.get("leverage", [1])
    if isinstance(leverage, int):
        leverage = [leverage]
    return SweepRanges(
        low=_parse_range(_require(data, "low"), "low"),
        high=_parse_range(_require(data, "high"), "high"),
        leverage=tuple(int(value) for value in leverage),
        extreme_low=_parse_range(extreme_low, "extreme_low") if extreme_low is not None else None,
        extreme_high=_parse_range(extreme_high, "extreme_high") if extreme_high is not None else None,
    )


def _parse_sweep(data: dict[str, Any]) -> SweepConfig:
    deadline = data.get("deadline_seconds")
    return SweepConfig(
        max_workers=int(data.get("max_workers", 4)),
        executor=_parse_enum(ExecutorKind, data.get("executor", "process"), "executor"),
        window_days=int(data.get("window_days", 30)),
        objective=_parse_enum(SweepObjective, data.get("objective", "total_return_pct"), "objective"),
        deadline_seconds=float(deadline) if deadline is not None else None,
        ranges=_parse_ranges(data.get("ranges", {})),
    )


def _parse_cache(data: dict[str, Any]) -> CacheConfig:
    backend = str(data.get("backend", "memory"))
    if backend not in CACHE_BACKENDS:
        raise ValueError(f"Invalid backend: {backend}")
    return CacheConfig(
        backend=backend,
        directory=str(data.get("directory", ".cache/backtests")),
        stale_after_hours=float(data.get("stale_after_hours", 24.0)),
    )


def _parse_store(data: dict[str, Any]) -> StoreConfig:
    return StoreConfig(
        path=str(data.get("path", "results/rolling_backtests.db")),
        write_attempts=int(data.get("write_attempts", 3)),
        retry_backoff_seconds=float(data.get("retry_backoff_seconds", 0.1)),
        busy_timeout_ms=int(data.get("busy_timeout_ms", 5000)),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    defaults = LoggingConfig()
    path = data.get("path")
    return LoggingConfig(
        level=str(data.get("level", defaults.level)).upper(),
        format=str(data.get("format", defaults.format)),
        path=str(path) if path is not None else None,
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def serialize_config(config: LabConfig) -> dict[str, Any]:
    return _jsonable(asdict(config))
