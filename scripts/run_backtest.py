"""Single cached backtest for one parameter set."""

from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path

from fgi_lab.cache import ResultCache
from fgi_lab.config import load_config
from fgi_lab.runtime import configure_logging
from fgi_lab.simulator import DateRange, SimulationParameters, StrategyMode, load_samples_csv, result_to_dict


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--series")
    parser.add_argument("--low", type=float, required=True)
    parser.add_argument("--high", type=float, required=True)
    parser.add_argument("--leverage", type=int, default=1)
    parser.add_argument("--strategy", choices=[mode.value for mode in StrategyMode])
    parser.add_argument("--extreme-low", type=float)
    parser.add_argument("--extreme-high", type=float)
    parser.add_argument("--start", type=date.fromisoformat)
    parser.add_argument("--end", type=date.fromisoformat)
    parser.add_argument("--output")
    args = parser.parse_args()

    config = load_config(Path(args.config))
    configure_logging(config.logging)

    series_path = args.series or config.series_path
    if not series_path:
        raise SystemExit("No series given: pass --series or set series_path in the config")
    samples = load_samples_csv(series_path)

    date_range = None
    if args.start or args.end:
        if not (args.start and args.end):
            raise SystemExit("--start and --end must be given together")
        date_range = DateRange(args.start, args.end)

    params = SimulationParameters(
        asset=config.asset,
        timeframe=config.timeframe,
        strategy_mode=StrategyMode(args.strategy) if args.strategy else config.strategy_mode,
        low_threshold=args.low,
        high_threshold=args.high,
        leverage=args.leverage,
        extreme_low_threshold=args.extreme_low,
        extreme_high_threshold=args.extreme_high,
        date_range=date_range,
    )
    cache = ResultCache.from_config(config.cache, settings=config.simulation)
    result = cache.run_and_cache(params, series=samples)

    payload = result_to_dict(result)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote {output_path}")
    else:
        print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
