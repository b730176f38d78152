"""Freeze a lab config (or check an existing lock) before a sweep."""

from __future__ import annotations

import argparse
from pathlib import Path

from fgi_lab.config import compute_config_hash, freeze_config, load_config, verify_config_lock

DEFAULT_CONFIG = Path("configs/lab.yaml")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("config", nargs="?", default=str(DEFAULT_CONFIG))
    parser.add_argument("--lock")
    parser.add_argument("--check", action="store_true", help="verify the existing lock without rewriting it")
    args = parser.parse_args()

    path = Path(args.config)
    # refuse to freeze a config the loader would reject
    config = load_config(path)

    if args.check:
        ok = verify_config_lock(path, args.lock)
        print(f"{config.name} {config.version}: lock {'ok' if ok else 'missing or stale'}")
        raise SystemExit(0 if ok else 1)

    lock_path = freeze_config(path, args.lock)
    ok = verify_config_lock(path, lock_path)
    print(
        f"Frozen {config.name} {config.version} ({config.asset} {config.timeframe}) "
        f"-> {lock_path} hash {compute_config_hash(path)[:8]} ({'ok' if ok else 'mismatch'})"
    )


if __name__ == "__main__":
    main()
