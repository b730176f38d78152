"""Simulation data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from fgi_lab.simulator.errors import InvalidParametersError

Number = Union[int, float]

MIN_LEVERAGE = 1
MAX_LEVERAGE = 12
SENTIMENT_MIN = 0
SENTIMENT_MAX = 100

PERIODS_PER_YEAR = {
    "15m": 365 * 96,
    "15min": 365 * 96,
    "1h": 365 * 24,
    "4h": 365 * 6,
    "1d": 365,
}


class StrategyMode(str, Enum):
    MOMENTUM = "momentum"
    CONTRARIAN = "contrarian"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"


class TradeAction(str, Enum):
    OPEN_LONG = "open_long"
    OPEN_SHORT = "open_short"
    CLOSE_LONG = "close_long"
    CLOSE_SHORT = "close_short"
    LIQUIDATION = "liquidation"

    @property
    def is_open(self) -> bool:
        return self in {TradeAction.OPEN_LONG, TradeAction.OPEN_SHORT}


class FundingConvention(str, Enum):
    LONG_PAYS = "long_pays"
    SHORT_PAYS = "short_pays"
    BOTH_PAY = "both_pay"

    def sign_for(self, side: PositionSide) -> int:
        """+1 when the side pays funding, -1 when it receives."""
        if side == PositionSide.NEUTRAL:
            return 0
        if self == FundingConvention.BOTH_PAY:
            return 1
        if self == FundingConvention.LONG_PAYS:
            return 1 if side == PositionSide.LONG else -1
        return 1 if side == PositionSide.SHORT else -1


class LiquidationRule(str, Enum):
    EQUITY = "equity"
    MAINTENANCE = "maintenance"


class RoundingPolicy(str, Enum):
    HALF_EVEN = "half_even"
    HALF_UP = "half_up"


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    price: Decimal
    sentiment: Number


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def label(self) -> str:
        return f"{self.start.isoformat()}-{self.end.isoformat()}"


@dataclass(frozen=True)
class SimulationParameters:
    asset: str
    timeframe: str
    strategy_mode: StrategyMode
    low_threshold: Number
    high_threshold: Number
    leverage: int
    extreme_low_threshold: Optional[Number] = None
    extreme_high_threshold: Optional[Number] = None
    date_range: Optional[DateRange] = None

    def extreme_low(self) -> Number:
        if self.extreme_low_threshold is None:
            return SENTIMENT_MIN
        return self.extreme_low_threshold

    def extreme_high(self) -> Number:
        if self.extreme_high_threshold is None:
            return SENTIMENT_MAX
        return self.extreme_high_threshold

    def validate(self) -> None:
        try:
            StrategyMode(self.strategy_mode)
        except ValueError as exc:
            raise InvalidParametersError(f"Invalid strategy_mode: {self.strategy_mode}") from exc

        if isinstance(self.leverage, bool) or not isinstance(self.leverage, int):
            raise InvalidParametersError(f"Leverage must be an integer, got {self.leverage!r}")
        if not MIN_LEVERAGE <= self.leverage <= MAX_LEVERAGE:
            raise InvalidParametersError(
                f"Leverage must be within {MIN_LEVERAGE}..{MAX_LEVERAGE}, got {self.leverage}"
            )

        for name in ("low_threshold", "high_threshold", "extreme_low_threshold", "extreme_high_threshold"):
            value = getattr(self, name)
            if value is None:
                continue
            if not SENTIMENT_MIN <= value <= SENTIMENT_MAX:
                raise InvalidParametersError(f"{name} must be within 0..100, got {value}")

        if self.low_threshold >= self.high_threshold:
            raise InvalidParametersError(
                f"low_threshold ({self.low_threshold}) must be below high_threshold ({self.high_threshold})"
            )
        if self.extreme_low() > self.low_threshold:
            raise InvalidParametersError(
                f"extreme_low_threshold ({self.extreme_low()}) must not exceed low_threshold ({self.low_threshold})"
            )
        if self.extreme_high() < self.high_threshold:
            raise InvalidParametersError(
                f"extreme_high_threshold ({self.extreme_high()}) must not be below "
                f"high_threshold ({self.high_threshold})"
            )
        if self.date_range is not None and self.date_range.start > self.date_range.end:
            raise InvalidParametersError("date_range start must not be after its end")


@dataclass(frozen=True)
class SimulationSettings:
    initial_capital: Decimal = Decimal("10000")
    fee_rate: Decimal = Decimal("0.001")
    funding_rate_per_bar: Decimal = Decimal("0.00003")
    funding_convention: FundingConvention = FundingConvention.LONG_PAYS
    position_fraction: Decimal = Decimal("1")
    min_balance_to_open: Decimal = Decimal("100")
    liquidation_rule: LiquidationRule = LiquidationRule.EQUITY
    liquidation_threshold: Decimal = Decimal("0.95")
    liquidation_loss_fraction: Decimal = Decimal("1")
    rounding: RoundingPolicy = RoundingPolicy.HALF_EVEN
    settlement_places: int = 8
    periods_per_year: Optional[float] = None
    record_trades: bool = False

    def annualization_periods(self, timeframe: str) -> float:
        if self.periods_per_year is not None:
            return float(self.periods_per_year)
        return float(PERIODS_PER_YEAR.get(timeframe.lower(), PERIODS_PER_YEAR["1h"]))


@dataclass
class Position:
    side: PositionSide
    notional: Decimal
    collateral: Decimal
    entry_price: Decimal
    leverage: int
    entry_time: datetime
    opening_fee: Decimal
    unrealized_pnl: Decimal = Decimal("0")
    funding_accrued: Decimal = Decimal("0")


@dataclass(frozen=True)
class TradeRecord:
    timestamp: datetime
    action: TradeAction
    price: Decimal
    sentiment: Number
    notional: Decimal
    pnl: Decimal
    fees: Decimal
    balance_after: Decimal


@dataclass(frozen=True)
class EquityPoint:
    time: datetime
    equity: Decimal
    mode: PositionSide


@dataclass(frozen=True)
class Window:
    index: int
    start_timestamp: datetime
    end_timestamp: datetime
    sample_count: int
    start_offset: int
    stop_offset: int

    def slice(self, series):
        return series[self.start_offset : self.stop_offset]


@dataclass(frozen=True)
class SimulationResult:
    params: SimulationParameters
    initial_capital: Decimal
    final_balance: Decimal
    total_return_pct: float
    gross_return_pct: float
    sharpe_ratio: float
    max_drawdown_pct: float
    volatility_pct: float
    num_trades: int
    win_rate_pct: float
    avg_trade_return_pct: float
    best_trade_pct: float
    worst_trade_pct: float
    liquidation_count: int
    fees_paid: Decimal
    funding_paid: Decimal
    time_in_long_pct: float
    time_in_short_pct: float
    time_in_neutral_pct: float
    time_in_market_pct: float
    override_activations: int
    override_deactivations: int
    trade_log: Optional[tuple[TradeRecord, ...]] = None
    equity_curve: Optional[tuple[EquityPoint, ...]] = None
    window: Optional[Window] = field(default=None, compare=False)

    def metric(self, name: str) -> float:
        return float(getattr(self, name))
