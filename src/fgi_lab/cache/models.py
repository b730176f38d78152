"""Cache entry and statistics models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fgi_lab.simulator.models import SimulationResult
from fgi_lab.simulator.serialization import format_datetime, parse_datetime, result_from_dict, result_to_dict

ENTRY_VERSION = "1.1"

PERMANENT = "permanent"
EPHEMERAL = "ephemeral"


@dataclass
class CacheEntry:
    key: str
    result: SimulationResult
    computed_at: datetime
    is_permanent: bool = False
    access_count: int = 0
    last_accessed: datetime | None = None
    settings_hash: str = ""

    @property
    def partition(self) -> str:
        return PERMANENT if self.is_permanent else EPHEMERAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "result": result_to_dict(self.result),
            "computed_at": format_datetime(self.computed_at),
            "is_permanent": self.is_permanent,
            "access_count": self.access_count,
            "last_accessed": format_datetime(self.last_accessed),
            "settings_hash": self.settings_hash,
            "version": ENTRY_VERSION,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        computed_at = parse_datetime(data.get("computed_at"))
        if computed_at is None:
            raise ValueError("Cache entry is missing computed_at")
        return cls(
            key=str(data["key"]),
            result=result_from_dict(data["result"]),
            computed_at=computed_at,
            is_permanent=bool(data.get("is_permanent", False)),
            access_count=int(data.get("access_count", 0)),
            last_accessed=parse_datetime(data.get("last_accessed")),
            settings_hash=str(data.get("settings_hash", "")),
        )


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    permanent_entries: int
    hits: int
    misses: int
    hit_rate: float
    avg_compute_ms: float
    avg_hit_ms: float
