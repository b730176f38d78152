"""Simulation helpers."""

from fgi_lab.simulator.engine import StrategySimulator, simulate, validate_series
from fgi_lab.simulator.errors import EmptySeriesError, InvalidInputError, InvalidParametersError
from fgi_lab.simulator.models import (
    DateRange,
    EquityPoint,
    FundingConvention,
    LiquidationRule,
    Position,
    PositionSide,
    RoundingPolicy,
    Sample,
    SimulationParameters,
    SimulationResult,
    SimulationSettings,
    StrategyMode,
    TradeAction,
    TradeRecord,
    Window,
)
from fgi_lab.simulator.serialization import (
    params_from_dict,
    params_to_dict,
    result_from_dict,
    result_to_dict,
)
from fgi_lab.simulator.series import PricePoint, SentimentPoint, load_samples_csv, merge_series
from fgi_lab.simulator.windows import generate_windows

__all__ = [
    "DateRange",
    "EmptySeriesError",
    "EquityPoint",
    "FundingConvention",
    "InvalidInputError",
    "InvalidParametersError",
    "LiquidationRule",
    "Position",
    "PositionSide",
    "PricePoint",
    "RoundingPolicy",
    "Sample",
    "SentimentPoint",
    "SimulationParameters",
    "SimulationResult",
    "SimulationSettings",
    "StrategyMode",
    "StrategySimulator",
    "TradeAction",
    "TradeRecord",
    "Window",
    "generate_windows",
    "load_samples_csv",
    "merge_series",
    "params_from_dict",
    "params_to_dict",
    "result_from_dict",
    "result_to_dict",
    "simulate",
    "validate_series",
]
