from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fgi_lab.cache import ResultCache
from fgi_lab.simulator import Sample, SimulationParameters, SimulationSettings, StrategyMode, simulate
from fgi_lab.sweep import ParameterRange, SweepOrchestrator, SweepRanges

start = datetime(2024, 6, 1, tzinfo=timezone.utc)
sentiments = [22, 28, 35, 47, 58, 66, 74, 81, 77, 69, 55, 43, 31, 24, 18, 26, 39, 52, 63, 72]
prices = [3400, 3380, 3395, 3420, 3460, 3510, 3575, 3640, 3610, 3580,
          3520, 3470, 3410, 3350, 3300, 3330, 3390, 3450, 3500, 3560]
series = [
    Sample(timestamp=start + timedelta(days=day), price=Decimal(price), sentiment=score)
    for day, (price, score) in enumerate(zip(prices, sentiments))
]

settings = SimulationSettings(record_trades=True)
params = SimulationParameters(
    asset="ETH",
    timeframe="1d",
    strategy_mode=StrategyMode.MOMENTUM,
    low_threshold=30,
    high_threshold=70,
    leverage=2,
)

result = simulate(series, params, settings)
print("Return:", f"{result.total_return_pct:.2f}%", "Sharpe:", f"{result.sharpe_ratio:.2f}")
print("Trades:", result.num_trades, "Fees:", result.fees_paid, "Funding:", result.funding_paid)
for trade in result.trade_log or ():
    print(" ", trade.timestamp.date(), trade.action.value, trade.price, trade.pnl)

orchestrator = SweepOrchestrator(settings, executor="serial")
ranges = SweepRanges(low=ParameterRange(20, 40, 10), high=ParameterRange(60, 80, 10), leverage=(1, 2, 3))
ranked = orchestrator.sweep(series, ranges, params)
best = ranked[0]
print(
    "Best of", len(ranked), "combinations:",
    f"{best.params.leverage}x low<={best.params.low_threshold} high>={best.params.high_threshold}",
    f"-> {best.total_return_pct:.2f}%",
)

cache = ResultCache(settings=settings)
cache.run_and_cache(params, series=series)
cache.run_and_cache(params, series=series)
print("Cache:", cache.stats())
