"""Leveraged long/short sentiment strategy simulator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from fgi_lab.simulator.errors import EmptySeriesError, InvalidInputError
from fgi_lab.simulator.metrics import DrawdownTracker, mean, population_stdev, sharpe_ratio
from fgi_lab.simulator.models import (
    SENTIMENT_MAX,
    SENTIMENT_MIN,
    EquityPoint,
    FundingConvention,
    LiquidationRule,
    Position,
    PositionSide,
    Sample,
    SimulationParameters,
    SimulationResult,
    SimulationSettings,
    StrategyMode,
    TradeAction,
    TradeRecord,
)
from fgi_lab.simulator.money import ZERO, Money, to_decimal

LOG = logging.getLogger(__name__)


def validate_series(series: Sequence[Sample]) -> None:
    if len(series) == 0:
        raise EmptySeriesError("Cannot simulate an empty series")
    if len(series) < 2:
        raise InvalidInputError("At least two samples are required to simulate")

    previous = None
    for sample in series:
        if previous is not None and sample.timestamp <= previous.timestamp:
            raise InvalidInputError(
                f"Samples must be strictly ascending by timestamp: {sample.timestamp.isoformat()} "
                f"follows {previous.timestamp.isoformat()}"
            )
        if to_decimal(sample.price) <= 0:
            raise InvalidInputError(f"Non-positive price at {sample.timestamp.isoformat()}")
        if not SENTIMENT_MIN <= sample.sentiment <= SENTIMENT_MAX:
            raise InvalidInputError(
                f"Sentiment {sample.sentiment} outside 0..100 at {sample.timestamp.isoformat()}"
            )
        previous = sample


@dataclass
class _Ledger:
    cash: Decimal
    position: Optional[Position] = None
    liquidated: bool = False
    fees: Decimal = ZERO
    funding: Decimal = ZERO
    gross_pnl: Decimal = ZERO
    closed_trades: int = 0
    winning_trades: int = 0
    liquidations: int = 0
    trade_returns: list[float] = field(default_factory=list)
    trades: list[TradeRecord] = field(default_factory=list)

    def equity(self) -> Decimal:
        if self.position is None:
            return self.cash
        return self.cash + self.position.unrealized_pnl - self.position.funding_accrued

    def mode(self) -> PositionSide:
        if self.position is None:
            return PositionSide.NEUTRAL
        return self.position.side


class StrategySimulator:
    """Runs one parameter set over one sample series.

    The simulator keeps no state between calls; every run builds its own
    ledger, so one instance can be shared across threads.
    """

    def __init__(self, settings: Optional[SimulationSettings] = None) -> None:
        self.settings = settings or SimulationSettings()
        self.money = Money(self.settings)

    def simulate(self, series: Sequence[Sample], params: SimulationParameters) -> SimulationResult:
        params.validate()
        samples = list(series)
        validate_series(samples)
        with self.money.context():
            return self._run(samples, params)

    def _run(self, samples: list[Sample], params: SimulationParameters) -> SimulationResult:
        settings = self.settings
        initial = to_decimal(settings.initial_capital)
        ledger = _Ledger(cash=initial)
        drawdown = DrawdownTracker(peak_equity=initial)
        record = settings.record_trades
        equity_curve: list[EquityPoint] = []

        contrarian = params.strategy_mode == StrategyMode.CONTRARIAN
        extreme_low = params.extreme_low()
        extreme_high = params.extreme_high()
        use_extreme_low = contrarian and extreme_low > SENTIMENT_MIN and extreme_low <= params.low_threshold
        use_extreme_high = contrarian and extreme_high < SENTIMENT_MAX and extreme_high >= params.high_threshold
        override_active = False
        activations = 0
        deactivations = 0

        bars = {PositionSide.LONG: 0, PositionSide.SHORT: 0, PositionSide.NEUTRAL: 0}
        last_index = len(samples) - 1

        for index, sample in enumerate(samples):
            price = to_decimal(sample.price)

            if ledger.position is not None:
                self._mark(ledger, price)
                if self._breaches_liquidation(ledger):
                    self._liquidate(ledger, sample, price)

            if not ledger.liquidated:
                override = (use_extreme_low and sample.sentiment <= extreme_low) or (
                    use_extreme_high and sample.sentiment >= extreme_high
                )
                if override and not override_active:
                    activations += 1
                elif override_active and not override:
                    deactivations += 1
                override_active = override

                mode = StrategyMode.MOMENTUM if override else StrategyMode(params.strategy_mode)
                target = self._target_side(sample.sentiment, params, mode)

                if index == last_index:
                    if ledger.position is not None:
                        self._close(ledger, sample, price)
                else:
                    if ledger.position is not None and target is not None and target != ledger.position.side:
                        self._close(ledger, sample, price)
                    if (
                        ledger.position is None
                        and target is not None
                        and ledger.cash > to_decimal(settings.min_balance_to_open)
                    ):
                        self._open(ledger, sample, price, target, params.leverage)

            equity = ledger.equity()
            drawdown.update(equity)
            bars[ledger.mode()] += 1
            if record:
                equity_curve.append(EquityPoint(time=sample.timestamp, equity=equity, mode=ledger.mode()))

        return self._finalize(
            params,
            ledger,
            drawdown,
            bars,
            len(samples),
            activations,
            deactivations,
            equity_curve if record else None,
        )

    @staticmethod
    def _target_side(sentiment, params: SimulationParameters, mode: StrategyMode) -> Optional[PositionSide]:
        # between the thresholds the current position is held
        if sentiment <= params.low_threshold:
            return PositionSide.SHORT if mode == StrategyMode.MOMENTUM else PositionSide.LONG
        if sentiment >= params.high_threshold:
            return PositionSide.LONG if mode == StrategyMode.MOMENTUM else PositionSide.SHORT
        return None

    def _mark(self, ledger: _Ledger, price: Decimal) -> None:
        position = ledger.position
        move = (price - position.entry_price) / position.entry_price
        pnl = position.notional * move
        if position.side == PositionSide.SHORT:
            pnl = -pnl
        position.unrealized_pnl = pnl

        rate = to_decimal(self.settings.funding_rate_per_bar)
        if rate:
            sign = FundingConvention(self.settings.funding_convention).sign_for(position.side)
            funding = self.money.settle(position.notional * rate) * sign
            position.funding_accrued += funding
            ledger.funding += funding

    def _breaches_liquidation(self, ledger: _Ledger) -> bool:
        if ledger.equity() <= 0:
            return True
        if self.settings.liquidation_rule != LiquidationRule.MAINTENANCE:
            return False
        position = ledger.position
        if position.collateral <= 0:
            return False
        remaining = position.collateral + position.unrealized_pnl - position.funding_accrued
        loss_fraction = (position.collateral - remaining) / position.collateral
        return loss_fraction >= to_decimal(self.settings.liquidation_threshold)

    def _liquidate(self, ledger: _Ledger, sample: Sample, price: Decimal) -> None:
        position = ledger.position
        loss = self.money.settle(ledger.cash * to_decimal(self.settings.liquidation_loss_fraction))
        ledger.cash -= loss
        ledger.gross_pnl += self.money.settle(position.unrealized_pnl)
        net = -(loss + position.opening_fee)
        self._book_round_trip(ledger, position, net)
        ledger.liquidations += 1
        ledger.liquidated = True
        ledger.position = None
        LOG.debug("Liquidated at %s price=%s balance=%s", sample.timestamp.isoformat(), price, ledger.cash)
        self._log_trade(ledger, sample, price, TradeAction.LIQUIDATION, position.notional, net, ZERO)

    def _close(self, ledger: _Ledger, sample: Sample, price: Decimal) -> None:
        position = ledger.position
        close_fee = self.money.settle(position.notional * to_decimal(self.settings.fee_rate))
        realized = self.money.settle(position.unrealized_pnl - position.funding_accrued - close_fee)
        ledger.cash += realized
        ledger.fees += close_fee
        ledger.gross_pnl += self.money.settle(position.unrealized_pnl)
        net = realized - position.opening_fee
        self._book_round_trip(ledger, position, net)
        ledger.position = None
        action = TradeAction.CLOSE_LONG if position.side == PositionSide.LONG else TradeAction.CLOSE_SHORT
        self._log_trade(ledger, sample, price, action, position.notional, net, close_fee)

    def _open(self, ledger: _Ledger, sample: Sample, price: Decimal, side: PositionSide, leverage: int) -> None:
        settings = self.settings
        collateral = self.money.settle(ledger.cash * to_decimal(settings.position_fraction))
        opening_fee = self.money.settle(collateral * to_decimal(settings.fee_rate))
        notional = self.money.settle((collateral - opening_fee) * leverage)
        ledger.cash -= opening_fee
        ledger.fees += opening_fee
        ledger.position = Position(
            side=side,
            notional=notional,
            collateral=collateral,
            entry_price=price,
            leverage=leverage,
            entry_time=sample.timestamp,
            opening_fee=opening_fee,
        )
        action = TradeAction.OPEN_LONG if side == PositionSide.LONG else TradeAction.OPEN_SHORT
        self._log_trade(ledger, sample, price, action, notional, ZERO, opening_fee)

    @staticmethod
    def _book_round_trip(ledger: _Ledger, position: Position, net: Decimal) -> None:
        ledger.closed_trades += 1
        if net > 0:
            ledger.winning_trades += 1
        if position.collateral > 0:
            ledger.trade_returns.append(float(net / position.collateral))

    def _log_trade(
        self,
        ledger: _Ledger,
        sample: Sample,
        price: Decimal,
        action: TradeAction,
        notional: Decimal,
        pnl: Decimal,
        fees: Decimal,
    ) -> None:
        if not self.settings.record_trades:
            return
        ledger.trades.append(
            TradeRecord(
                timestamp=sample.timestamp,
                action=action,
                price=price,
                sentiment=sample.sentiment,
                notional=notional,
                pnl=pnl,
                fees=fees,
                balance_after=ledger.cash,
            )
        )

    def _finalize(
        self,
        params: SimulationParameters,
        ledger: _Ledger,
        drawdown: DrawdownTracker,
        bars: dict[PositionSide, int],
        total_bars: int,
        activations: int,
        deactivations: int,
        equity_curve: Optional[list[EquityPoint]],
    ) -> SimulationResult:
        initial = to_decimal(self.settings.initial_capital)
        returns = ledger.trade_returns
        closed = ledger.closed_trades
        long_pct = bars[PositionSide.LONG] / total_bars * 100
        short_pct = bars[PositionSide.SHORT] / total_bars * 100

        return SimulationResult(
            params=params,
            initial_capital=initial,
            final_balance=ledger.cash,
            total_return_pct=self.money.pct(ledger.cash - initial, initial),
            gross_return_pct=self.money.pct(ledger.gross_pnl, initial),
            sharpe_ratio=sharpe_ratio(returns, self.settings.annualization_periods(params.timeframe)),
            max_drawdown_pct=drawdown.max_drawdown_pct(),
            volatility_pct=population_stdev(returns) * 100,
            num_trades=closed,
            win_rate_pct=ledger.winning_trades / closed * 100 if closed else 0.0,
            avg_trade_return_pct=mean(returns) * 100,
            best_trade_pct=max(returns) * 100 if returns else 0.0,
            worst_trade_pct=min(returns) * 100 if returns else 0.0,
            liquidation_count=ledger.liquidations,
            fees_paid=ledger.fees,
            funding_paid=ledger.funding,
            time_in_long_pct=long_pct,
            time_in_short_pct=short_pct,
            time_in_neutral_pct=bars[PositionSide.NEUTRAL] / total_bars * 100,
            time_in_market_pct=long_pct + short_pct,
            override_activations=activations,
            override_deactivations=deactivations,
            trade_log=tuple(ledger.trades) if self.settings.record_trades else None,
            equity_curve=tuple(equity_curve) if equity_curve is not None else None,
        )


def simulate(
    series: Sequence[Sample],
    params: SimulationParameters,
    settings: Optional[SimulationSettings] = None,
) -> SimulationResult:
    return StrategySimulator(settings).simulate(series, params)
