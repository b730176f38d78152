"""Rolling-window parameter sweep persisted to the result store."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from fgi_lab.config import load_config
from fgi_lab.runtime import configure_logging, create_run_context
from fgi_lab.simulator import SimulationParameters, load_samples_csv
from fgi_lab.store import ResultStore, StoreWriteError
from fgi_lab.sweep import CancellationToken, SweepCancelled, SweepOrchestrator, summarize

LOG = logging.getLogger("fgi_lab.scripts.run_sweep")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--series", help="CSV with timestamp,price,fgi columns (overrides series_path)")
    parser.add_argument("--window-days", type=int)
    parser.add_argument("--workers", type=int)
    args = parser.parse_args()

    config_path = Path(args.config)
    config = load_config(config_path)
    configure_logging(config.logging)

    series_path = args.series or config.series_path
    if not series_path:
        raise SystemExit("No series given: pass --series or set series_path in the config")
    samples = load_samples_csv(series_path)

    window_days = args.window_days or config.sweep.window_days
    context = create_run_context(config_path, config.run_id_prefix)
    meta = context.run_meta(config.asset, config.timeframe, window_size_days=window_days)

    base = SimulationParameters(
        asset=config.asset,
        timeframe=config.timeframe,
        strategy_mode=config.strategy_mode,
        low_threshold=config.sweep.ranges.low.start,
        high_threshold=config.sweep.ranges.high.end,
        leverage=config.sweep.ranges.leverage[0],
    )
    orchestrator = SweepOrchestrator(
        config.simulation,
        max_workers=args.workers or config.sweep.max_workers,
        executor=config.sweep.executor,
        objective=config.sweep.objective,
    )
    token = CancellationToken(config.sweep.deadline_seconds)
    store = ResultStore.from_config(config.store)

    LOG.info("Run ID: %s", context.run_id)
    try:
        results = orchestrator.run_rolling(
            samples,
            window_days,
            config.sweep.ranges,
            base,
            store=store,
            meta=meta,
            token=token,
        )
    except SweepCancelled:
        LOG.warning("Sweep stopped early; completed windows are stored under %s", context.run_id)
        raise SystemExit(1)
    except StoreWriteError as exc:
        LOG.error("%s (%d rows pending)", exc, exc.pending)
        raise SystemExit(1)
    finally:
        store.close()

    summary = summarize(results)
    print(f"Run ID: {context.run_id}")
    print(f"Runs: {summary.total_runs} | profitable: {summary.profitable_pct:.1f}%")
    if summary.best_return is not None:
        best = summary.best_return
        print(
            f"Best return: {best.total_return_pct:.2f}% "
            f"({best.params.leverage}x, low<={best.params.low_threshold}, high>={best.params.high_threshold})"
        )


if __name__ == "__main__":
    main()
