from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fgi_lab.simulator import (
    InvalidParametersError,
    Sample,
    SimulationParameters,
    SimulationSettings,
    StrategyMode,
    generate_windows,
    simulate,
)
from fgi_lab.store import ResultStore, RunMeta
from fgi_lab.sweep import orchestrator as orchestrator_module
from fgi_lab.sweep import (
    CancellationToken,
    ParameterRange,
    SweepCancelled,
    SweepObjective,
    SweepOrchestrator,
    SweepRanges,
    generate_combinations,
    rank_results,
    summarize,
)

START = datetime(2024, 2, 1, tzinfo=timezone.utc)
PRICES = [100, 103, 99, 108, 115, 111, 104, 96, 92, 97, 105, 112, 118, 110, 101, 95, 90, 98, 106, 113]
SENTIMENTS = [18, 34, 52, 71, 83, 66, 41, 27, 12, 30, 58, 76, 88, 62, 38, 22, 9, 45, 69, 81]


def _series():
    return [
        Sample(timestamp=START + timedelta(days=day), price=Decimal(price), sentiment=score)
        for day, (price, score) in enumerate(zip(PRICES, SENTIMENTS))
    ]


def _base():
    return SimulationParameters(
        asset="ETH",
        timeframe="1d",
        strategy_mode=StrategyMode.MOMENTUM,
        low_threshold=30,
        high_threshold=70,
        leverage=1,
    )


def _ranges(**overrides):
    values = dict(
        low=ParameterRange(20, 40, 10),
        high=ParameterRange(30, 50, 10),
        leverage=(1, 2),
    )
    values.update(overrides)
    return SweepRanges(**values)


def test_parameter_range_includes_end_and_clamps():
    assert ParameterRange(20, 33, 5).values() == [20, 25, 30, 33]
    assert ParameterRange(-10, 5, 5).values() == [0, 5]
    assert ParameterRange(95, 130, 10).values() == [95, 100]
    assert ParameterRange(40, 20, 10).values() == [20, 30, 40]
    assert ParameterRange.single(25).values() == [25]


def test_combinations_never_cross_thresholds():
    combos = generate_combinations(_ranges(), _base())

    assert len(combos) == 12
    assert all(params.low_threshold < params.high_threshold for params in combos)
    assert {params.leverage for params in combos} == {1, 2}


def test_combinations_respect_extreme_ordering():
    ranges = _ranges(
        low=ParameterRange.single(20),
        high=ParameterRange.single(80),
        leverage=(1,),
        extreme_low=ParameterRange(10, 30, 10),
        extreme_high=ParameterRange(70, 90, 10),
    )

    combos = generate_combinations(ranges, replace(_base(), strategy_mode=StrategyMode.CONTRARIAN))

    assert {(p.extreme_low_threshold, p.extreme_high_threshold) for p in combos} == {
        (10, 80),
        (10, 90),
        (20, 80),
        (20, 90),
    }


def test_invalid_leverage_rejected_before_any_run():
    orchestrator = SweepOrchestrator(executor="serial")

    with pytest.raises(InvalidParametersError):
        orchestrator.sweep(_series(), _ranges(leverage=(1, 20)), _base())


def test_sweep_matches_direct_simulation():
    settings = SimulationSettings()
    results = SweepOrchestrator(settings, executor="serial").sweep(_series(), _ranges(), _base())

    for result in results:
        assert result == simulate(_series(), result.params, settings)


@pytest.mark.parametrize("executor", ["thread", "process"])
def test_parallel_sweep_matches_serial(executor):
    serial = SweepOrchestrator(executor="serial").sweep(_series(), _ranges(), _base())
    parallel = SweepOrchestrator(max_workers=3, executor=executor).sweep(_series(), _ranges(), _base())

    assert parallel == serial


def test_parallel_sweep_ships_each_window_once_per_worker(monkeypatch):
    calls = []
    simulate_batch = orchestrator_module._simulate_batch

    def counting(settings, samples, batch):
        calls.append(len(batch))
        return simulate_batch(settings, samples, batch)

    monkeypatch.setattr(orchestrator_module, "_simulate_batch", counting)
    windows = generate_windows(_series(), 10)

    parallel = SweepOrchestrator(max_workers=3, executor="thread").sweep(
        _series(), _ranges(), _base(), windows=windows
    )
    serial = SweepOrchestrator(executor="serial").sweep(_series(), _ranges(), _base(), windows=windows)

    assert len(calls) == len(windows) * 3
    assert all(size == 4 for size in calls)
    assert parallel == serial


def test_ranking_breaks_ties_on_drawdown_then_liquidations():
    template = simulate(_series(), _base())
    best = replace(template, total_return_pct=12.0, max_drawdown_pct=8.0, liquidation_count=0)
    safer = replace(template, total_return_pct=10.0, max_drawdown_pct=2.0, liquidation_count=1)
    riskier = replace(template, total_return_pct=10.0, max_drawdown_pct=6.0, liquidation_count=0)
    cleaner = replace(template, total_return_pct=10.0, max_drawdown_pct=2.0, liquidation_count=0)

    ranked = rank_results([riskier, safer, best, cleaner], SweepObjective.TOTAL_RETURN)

    assert ranked == [best, cleaner, safer, riskier]


def test_rank_by_sharpe():
    results = SweepOrchestrator(executor="serial", objective="sharpe_ratio").sweep(_series(), _ranges(), _base())

    sharpes = [result.sharpe_ratio for result in results]
    assert sharpes == sorted(sharpes, reverse=True)


def test_sweep_over_windows_attaches_window():
    windows = generate_windows(_series(), 10)
    results = SweepOrchestrator(executor="serial").sweep(_series(), _ranges(), _base(), windows=windows)

    assert len(results) == len(windows) * 12
    assert all(result.window is not None for result in results)


def test_cancelled_token_stops_sweep():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SweepCancelled):
        SweepOrchestrator(executor="serial").sweep(_series(), _ranges(), _base(), token=token)
    with pytest.raises(SweepCancelled):
        SweepOrchestrator(executor="thread").sweep(_series(), _ranges(), _base(), token=token)


def test_expired_deadline_cancels():
    token = CancellationToken(deadline_seconds=0)

    assert token.cancelled
    with pytest.raises(SweepCancelled):
        token.raise_if_cancelled()


def test_run_rolling_persists_each_window(tmp_path):
    store = ResultStore(tmp_path / "runs.db")
    meta = RunMeta(run_id="fgi-test-run", asset="ETH", timeframe="1d", window_size_days=10)
    orchestrator = SweepOrchestrator(executor="thread", max_workers=2)

    results = orchestrator.run_rolling(_series(), 10, _ranges(), _base(), store=store, meta=meta)

    assert len(results) == 11 * 12
    assert store.count() == len(results)
    assert store.query_stats().total_runs == 1
    store.close()


def test_run_rolling_requires_meta_with_store(tmp_path):
    store = ResultStore(tmp_path / "runs.db")

    with pytest.raises(ValueError):
        SweepOrchestrator(executor="serial").run_rolling(_series(), 10, _ranges(), _base(), store=store)
    store.close()


def test_summarize_batch():
    results = SweepOrchestrator(executor="serial").sweep(_series(), _ranges(), _base())

    summary = summarize(results)

    assert summary.total_runs == 12
    assert summary.best_return == results[0]
    assert summary.best_sharpe.sharpe_ratio == max(result.sharpe_ratio for result in results)
    assert summarize([]).best_return is None
