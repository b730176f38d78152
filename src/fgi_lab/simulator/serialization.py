"""JSON-safe conversion of parameters and simulation results."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from fgi_lab.simulator.models import (
    DateRange,
    EquityPoint,
    PositionSide,
    SimulationParameters,
    SimulationResult,
    StrategyMode,
    TradeAction,
    TradeRecord,
    Window,
)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    if value.endswith("Z"):
        value = value.replace("Z", "+00:00")
    return datetime.fromisoformat(value)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def params_to_dict(params: SimulationParameters) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "asset": params.asset,
        "timeframe": params.timeframe,
        "strategy_mode": StrategyMode(params.strategy_mode).value,
        "low_threshold": params.low_threshold,
        "high_threshold": params.high_threshold,
        "leverage": params.leverage,
        "extreme_low_threshold": params.extreme_low_threshold,
        "extreme_high_threshold": params.extreme_high_threshold,
        "date_range": None,
    }
    if params.date_range is not None:
        payload["date_range"] = {
            "start": params.date_range.start.isoformat(),
            "end": params.date_range.end.isoformat(),
        }
    return payload


def params_from_dict(data: dict[str, Any]) -> SimulationParameters:
    date_range = None
    if data.get("date_range"):
        date_range = DateRange(
            start=date.fromisoformat(data["date_range"]["start"]),
            end=date.fromisoformat(data["date_range"]["end"]),
        )
    return SimulationParameters(
        asset=data["asset"],
        timeframe=data["timeframe"],
        strategy_mode=StrategyMode(data["strategy_mode"]),
        low_threshold=data["low_threshold"],
        high_threshold=data["high_threshold"],
        leverage=int(data["leverage"]),
        extreme_low_threshold=data.get("extreme_low_threshold"),
        extreme_high_threshold=data.get("extreme_high_threshold"),
        date_range=date_range,
    )


def _window_to_dict(window: Optional[Window]) -> Optional[dict[str, Any]]:
    if window is None:
        return None
    return {
        "index": window.index,
        "start_timestamp": format_datetime(window.start_timestamp),
        "end_timestamp": format_datetime(window.end_timestamp),
        "sample_count": window.sample_count,
        "start_offset": window.start_offset,
        "stop_offset": window.stop_offset,
    }


def _window_from_dict(data: Optional[dict[str, Any]]) -> Optional[Window]:
    if not data:
        return None
    return Window(
        index=int(data["index"]),
        start_timestamp=parse_datetime(data["start_timestamp"]),
        end_timestamp=parse_datetime(data["end_timestamp"]),
        sample_count=int(data["sample_count"]),
        start_offset=int(data["start_offset"]),
        stop_offset=int(data["stop_offset"]),
    )


def result_to_dict(result: SimulationResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "params": params_to_dict(result.params),
        "initial_capital": str(result.initial_capital),
        "final_balance": str(result.final_balance),
        "total_return_pct": result.total_return_pct,
        "gross_return_pct": result.gross_return_pct,
        "sharpe_ratio": result.sharpe_ratio,
        "max_drawdown_pct": result.max_drawdown_pct,
        "volatility_pct": result.volatility_pct,
        "num_trades": result.num_trades,
        "win_rate_pct": result.win_rate_pct,
        "avg_trade_return_pct": result.avg_trade_return_pct,
        "best_trade_pct": result.best_trade_pct,
        "worst_trade_pct": result.worst_trade_pct,
        "liquidation_count": result.liquidation_count,
        "fees_paid": str(result.fees_paid),
        "funding_paid": str(result.funding_paid),
        "time_in_long_pct": result.time_in_long_pct,
        "time_in_short_pct": result.time_in_short_pct,
        "time_in_neutral_pct": result.time_in_neutral_pct,
        "time_in_market_pct": result.time_in_market_pct,
        "override_activations": result.override_activations,
        "override_deactivations": result.override_deactivations,
        "trade_log": None,
        "equity_curve": None,
        "window": _window_to_dict(result.window),
    }
    if result.trade_log is not None:
        payload["trade_log"] = [
            {
                "timestamp": format_datetime(trade.timestamp),
                "action": trade.action.value,
                "price": str(trade.price),
                "sentiment": trade.sentiment,
                "notional": str(trade.notional),
                "pnl": str(trade.pnl),
                "fees": str(trade.fees),
                "balance_after": str(trade.balance_after),
            }
            for trade in result.trade_log
        ]
    if result.equity_curve is not None:
        payload["equity_curve"] = [
            {"time": format_datetime(point.time), "equity": str(point.equity), "mode": point.mode.value}
            for point in result.equity_curve
        ]
    return payload


def result_from_dict(data: dict[str, Any]) -> SimulationResult:
    trade_log = None
    if data.get("trade_log") is not None:
        trade_log = tuple(
            TradeRecord(
                timestamp=parse_datetime(trade["timestamp"]),
                action=TradeAction(trade["action"]),
                price=_dec(trade["price"]),
                sentiment=trade["sentiment"],
                notional=_dec(trade["notional"]),
                pnl=_dec(trade["pnl"]),
                fees=_dec(trade["fees"]),
                balance_after=_dec(trade["balance_after"]),
            )
            for trade in data["trade_log"]
        )
    equity_curve = None
    if data.get("equity_curve") is not None:
        equity_curve = tuple(
            EquityPoint(
                time=parse_datetime(point["time"]),
                equity=_dec(point["equity"]),
                mode=PositionSide(point["mode"]),
            )
            for point in data["equity_curve"]
        )

    return SimulationResult(
        params=params_from_dict(data["params"]),
        initial_capital=_dec(data["initial_capital"]),
        final_balance=_dec(data["final_balance"]),
        total_return_pct=float(data["total_return_pct"]),
        gross_return_pct=float(data.get("gross_return_pct", 0.0)),
        sharpe_ratio=float(data["sharpe_ratio"]),
        max_drawdown_pct=float(data["max_drawdown_pct"]),
        volatility_pct=float(data.get("volatility_pct", 0.0)),
        num_trades=int(data["num_trades"]),
        win_rate_pct=float(data["win_rate_pct"]),
        avg_trade_return_pct=float(data.get("avg_trade_return_pct", 0.0)),
        best_trade_pct=float(data.get("best_trade_pct", 0.0)),
        worst_trade_pct=float(data.get("worst_trade_pct", 0.0)),
        liquidation_count=int(data["liquidation_count"]),
        fees_paid=_dec(data["fees_paid"]),
        funding_paid=_dec(data["funding_paid"]),
        time_in_long_pct=float(data["time_in_long_pct"]),
        time_in_short_pct=float(data["time_in_short_pct"]),
        time_in_neutral_pct=float(data["time_in_neutral_pct"]),
        time_in_market_pct=float(data.get("time_in_market_pct", 0.0)),
        override_activations=int(data.get("override_activations", 0)),
        override_deactivations=int(data.get("override_deactivations", 0)),
        trade_log=trade_log,
        equity_curve=equity_curve,
        window=_window_from_dict(data.get("window")),
    )
