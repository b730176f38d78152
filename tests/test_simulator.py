from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fgi_lab.simulator import (
    EmptySeriesError,
    InvalidInputError,
    InvalidParametersError,
    LiquidationRule,
    PositionSide,
    Sample,
    SimulationParameters,
    SimulationSettings,
    StrategyMode,
    TradeAction,
    result_from_dict,
    result_to_dict,
    simulate,
)
from fgi_lab.simulator.models import RoundingPolicy
from fgi_lab.simulator.money import Money

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _series(prices, sentiments):
    return [
        Sample(timestamp=START + timedelta(days=day), price=Decimal(str(price)), sentiment=score)
        for day, (price, score) in enumerate(zip(prices, sentiments))
    ]


def _params(**overrides):
    values = dict(
        asset="BTC",
        timeframe="1d",
        strategy_mode=StrategyMode.MOMENTUM,
        low_threshold=30,
        high_threshold=70,
        leverage=1,
    )
    values.update(overrides)
    return SimulationParameters(**values)


def _settings(**overrides):
    values = dict(funding_rate_per_bar=Decimal("0"), record_trades=True)
    values.update(overrides)
    return SimulationSettings(**values)


def _actions(result):
    return [trade.action for trade in result.trade_log]


def test_flat_price_oscillating_sentiment():
    series = _series([100] * 10, [20, 35, 50, 65, 80, 70, 60, 50, 40, 20])

    result = simulate(series, _params(), _settings())

    opens = [trade for trade in result.trade_log if trade.action.is_open]
    assert [trade.action for trade in opens] == [TradeAction.OPEN_SHORT, TradeAction.OPEN_LONG]
    assert [trade.sentiment for trade in opens] == [20, 80]
    assert result.liquidation_count == 0
    assert result.gross_return_pct == 0
    assert result.fees_paid > 0
    assert result.final_balance == result.initial_capital - result.fees_paid
    assert result.num_trades == 2


def test_fee_accounting_on_entry_notional():
    series = _series([100] * 10, [20, 35, 50, 65, 80, 70, 60, 50, 40, 20])

    result = simulate(series, _params(), _settings())

    # open 10 + close 9.99 on the short, then 9.98001 + 9.97002999 on the long
    assert result.fees_paid == Decimal("39.94003999")
    assert result.final_balance == Decimal("9960.05996001")


def test_liquidation_is_terminal():
    series = _series([100, 90, 95, 100, 100], [80, 50, 80, 20, 50])

    result = simulate(series, _params(leverage=12), _settings())

    assert result.liquidation_count == 1
    assert _actions(result) == [TradeAction.OPEN_LONG, TradeAction.LIQUIDATION]
    liquidated_at = result.trade_log[-1].timestamp
    assert all(point.mode == PositionSide.NEUTRAL for point in result.equity_curve if point.time >= liquidated_at)
    assert result.final_balance == 0
    assert result.num_trades == 1


def test_maintenance_rule_liquidates_before_equity_is_gone():
    series = _series(["100", "90.4", "95"], [80, 60, 60])

    maintenance = simulate(series, _params(leverage=10), _settings(liquidation_rule=LiquidationRule.MAINTENANCE))
    equity_rule = simulate(series, _params(leverage=10), _settings())

    assert maintenance.liquidation_count == 1
    assert equity_rule.liquidation_count == 0


def test_neutral_zone_holds_position():
    series = _series([100, 101, 102, 103, 104], [80, 50, 50, 50, 60])

    result = simulate(series, _params(), _settings())

    assert _actions(result) == [TradeAction.OPEN_LONG, TradeAction.CLOSE_LONG]
    assert result.time_in_long_pct == pytest.approx(80.0)
    assert result.time_in_neutral_pct == pytest.approx(20.0)
    assert result.gross_return_pct > 0


def test_final_bar_never_opens():
    series = _series([100, 100, 100], [50, 50, 80])

    result = simulate(series, _params(), _settings())

    assert result.num_trades == 0
    assert result.trade_log == ()
    assert result.fees_paid == 0
    assert result.final_balance == result.initial_capital


def test_contrarian_inverts_direction():
    series = _series([100, 100, 100], [20, 80, 50])

    result = simulate(series, _params(strategy_mode=StrategyMode.CONTRARIAN), _settings())

    assert _actions(result) == [
        TradeAction.OPEN_LONG,
        TradeAction.CLOSE_LONG,
        TradeAction.OPEN_SHORT,
        TradeAction.CLOSE_SHORT,
    ]


def test_extreme_reading_overrides_contrarian_to_momentum():
    series = _series([100, 100, 100], [5, 20, 50])
    params = _params(strategy_mode=StrategyMode.CONTRARIAN, extreme_low_threshold=10)

    result = simulate(series, params, _settings())

    assert _actions(result)[:3] == [TradeAction.OPEN_SHORT, TradeAction.CLOSE_SHORT, TradeAction.OPEN_LONG]
    assert result.override_activations == 1
    assert result.override_deactivations == 1


def test_extreme_thresholds_ignored_in_momentum_mode():
    series = _series([100, 100, 100], [5, 20, 50])

    result = simulate(series, _params(extreme_low_threshold=10), _settings())

    assert _actions(result) == [TradeAction.OPEN_SHORT, TradeAction.CLOSE_SHORT]
    assert result.override_activations == 0


def test_funding_paid_by_longs_received_by_shorts():
    flat = [100, 100, 100]
    settings = _settings(funding_rate_per_bar=Decimal("0.00003"))

    long_run = simulate(_series(flat, [80, 80, 80]), _params(), settings)
    short_run = simulate(_series(flat, [20, 20, 20]), _params(), settings)

    assert long_run.funding_paid == Decimal("0.5994")
    assert short_run.funding_paid == Decimal("-0.5994")
    assert long_run.final_balance == long_run.initial_capital - long_run.fees_paid - long_run.funding_paid


def test_simulation_is_deterministic():
    series = _series(
        [100, 104, 98, 110, 120, 95, 90, 105, 111, 99],
        [15, 45, 75, 85, 60, 25, 10, 55, 80, 40],
    )
    params = _params(leverage=3)

    first = simulate(series, params, _settings(funding_rate_per_bar=Decimal("0.00003")))
    second = simulate(series, params, _settings(funding_rate_per_bar=Decimal("0.00003")))

    assert first == second


def test_result_survives_dict_conversion():
    series = _series([100, 104, 98, 110, 120], [15, 45, 75, 85, 60])
    result = simulate(series, _params(leverage=2), _settings())

    assert result_from_dict(result_to_dict(result)) == result


def test_series_validation():
    params = _params()
    with pytest.raises(EmptySeriesError):
        simulate([], params)
    with pytest.raises(InvalidInputError):
        simulate(_series([100], [50]), params)
    with pytest.raises(InvalidInputError):
        simulate(list(reversed(_series([100, 101], [50, 50]))), params)
    with pytest.raises(InvalidInputError):
        simulate(_series([100, 0], [50, 50]), params)
    with pytest.raises(InvalidInputError):
        simulate(_series([100, 100], [50, 101]), params)


@pytest.mark.parametrize(
    "overrides",
    [
        {"leverage": 13},
        {"leverage": 0},
        {"low_threshold": 70, "high_threshold": 30},
        {"low_threshold": 50, "high_threshold": 50},
        {"high_threshold": 120},
        {"extreme_low_threshold": 40},
        {"extreme_high_threshold": 60},
    ],
)
def test_invalid_parameters_rejected(overrides):
    with pytest.raises(InvalidParametersError):
        simulate(_series([100, 100], [50, 50]), _params(**overrides))


def test_rounding_policy_applies_to_settlement():
    half_even = Money(SimulationSettings(settlement_places=2))
    half_up = Money(SimulationSettings(settlement_places=2, rounding=RoundingPolicy.HALF_UP))

    assert half_even.settle(Decimal("0.125")) == Decimal("0.12")
    assert half_up.settle(Decimal("0.125")) == Decimal("0.13")
