from pathlib import Path

from fgi_lab.config import freeze_config, load_config, verify_config_lock
from fgi_lab.runtime import configure_logging, create_run_context
from fgi_lab.simulator import SimulationParameters, load_samples_csv
from fgi_lab.store import ResultStore
from fgi_lab.sweep import CancellationToken, SweepOrchestrator


config_path = Path("configs") / "lab.yaml"
config = load_config(config_path)
lock_path = freeze_config(config_path)
assert verify_config_lock(config_path, lock_path)

configure_logging(config.logging)
context = create_run_context(config_path, config.run_id_prefix)

samples = load_samples_csv(config.series_path)
base = SimulationParameters(
    asset=config.asset,
    timeframe=config.timeframe,
    strategy_mode=config.strategy_mode,
    low_threshold=30,
    high_threshold=70,
    leverage=1,
)

store = ResultStore.from_config(config.store)
orchestrator = SweepOrchestrator(
    config.simulation,
    max_workers=config.sweep.max_workers,
    executor=config.sweep.executor,
    objective=config.sweep.objective,
)
results = orchestrator.run_rolling(
    samples,
    config.sweep.window_days,
    config.sweep.ranges,
    base,
    store=store,
    meta=context.run_meta(config.asset, config.timeframe, config.sweep.window_days),
    token=CancellationToken(config.sweep.deadline_seconds),
)

print("Run:", context.run_id, "results:", len(results))
print("Stats:", store.query_stats())
for run in store.query_top("sharpe_ratio", limit=5):
    print(run.window_index, run.leverage, run.low_threshold, run.high_threshold, f"{run.sharpe_ratio:.2f}")
store.close()
