"""Run context creation and metadata."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fgi_lab.config.loader import compute_config_hash
from fgi_lab.store.models import RunMeta


@dataclass(frozen=True)
class RunContext:
    run_id: str
    config_path: Optional[Path]
    config_hash: str
    started_at: datetime

    def run_meta(self, asset: str, timeframe: str, window_size_days: int = 0) -> RunMeta:
        return RunMeta(
            run_id=self.run_id,
            asset=asset,
            timeframe=timeframe,
            window_size_days=window_size_days,
            run_timestamp=self.started_at,
        )


def create_run_context(
    config_path: Optional[str | Path],
    run_id_prefix: str,
    run_id: Optional[str] = None,
    started_at: Optional[datetime] = None,
) -> RunContext:
    """Run ids read ``<prefix>-<UTC stamp>-<config hash[:8]>``.

    Without a config file the hash covers the prefix alone.
    """
    path = Path(config_path) if config_path is not None else None
    if path is not None:
        config_hash = compute_config_hash(path)
    else:
        config_hash = hashlib.sha256(run_id_prefix.encode("utf-8")).hexdigest()
    started_at = started_at or datetime.now(timezone.utc)
    if run_id is None:
        stamp = started_at.strftime("%Y%m%dT%H%M%SZ")
        run_id = f"{run_id_prefix}-{stamp}-{config_hash[:8]}"
    return RunContext(
        run_id=run_id,
        config_path=path,
        config_hash=config_hash,
        started_at=started_at,
    )
