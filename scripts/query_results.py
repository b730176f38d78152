"""Query the result store: top runs, aggregate stats, best per asset."""

from __future__ import annotations

import argparse
from dataclasses import asdict

from fgi_lab.store import RANKABLE_METRICS, ResultStore, RunFilters

TOP_COLUMNS = (
    "asset",
    "strategy",
    "window_index",
    "low_threshold",
    "high_threshold",
    "leverage",
    "total_return_pct",
    "sharpe_ratio",
    "max_drawdown_pct",
    "num_trades",
    "win_rate_pct",
)


def _print_rows(rows: list[dict], columns) -> None:
    print(" | ".join(columns))
    for row in rows:
        print(" | ".join(_fmt(row[column]) for column in columns))


def _fmt(value) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return "-" if value is None else str(value)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True)
    parser.add_argument("command", choices=["top", "sharpe", "params", "stats", "best", "options"])
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--metric", default="total_return_pct", choices=sorted(RANKABLE_METRICS))
    parser.add_argument("--asset")
    parser.add_argument("--timeframe")
    parser.add_argument("--strategy")
    parser.add_argument("--run-id")
    parser.add_argument("--low", type=float)
    parser.add_argument("--high", type=float)
    parser.add_argument("--leverage", type=int)
    args = parser.parse_args()

    filters = RunFilters(
        asset=args.asset,
        timeframe=args.timeframe,
        strategy=args.strategy,
        run_id=args.run_id,
        leverage=args.leverage,
    )
    store = ResultStore(args.db)
    try:
        if args.command in ("top", "sharpe"):
            metric = "sharpe_ratio" if args.command == "sharpe" else args.metric
            rows = [asdict(run) for run in store.query_top(metric, args.limit, filters)]
            _print_rows(rows, TOP_COLUMNS)
        elif args.command == "params":
            if args.asset is None or args.low is None or args.high is None or args.leverage is None:
                raise SystemExit("params needs --asset, --low, --high and --leverage")
            run = store.query_params(args.asset, args.low, args.high, args.leverage, strategy=args.strategy)
            if run is None:
                print("No matching run")
            else:
                for key, value in asdict(run).items():
                    print(f"{key}: {_fmt(value)}")
        elif args.command == "stats":
            for key, value in asdict(store.query_stats(filters)).items():
                print(f"{key}: {_fmt(value)}")
        elif args.command == "best":
            rows = [asdict(best) for best in store.best_per_asset(filters)]
            _print_rows(rows, ("asset", "best_return_pct", "strategy", "low_threshold", "high_threshold", "leverage"))
        else:
            for key, values in asdict(store.filter_options()).items():
                print(f"{key}: {', '.join(str(value) for value in values)}")
    finally:
        store.close()


if __name__ == "__main__":
    main()
