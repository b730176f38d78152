"""Sweep range and objective definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SweepObjective(str, Enum):
    TOTAL_RETURN = "total_return_pct"
    SHARPE = "sharpe_ratio"


class ExecutorKind(str, Enum):
    PROCESS = "process"
    THREAD = "thread"
    SERIAL = "serial"


@dataclass(frozen=True)
class ParameterRange:
    start: int
    end: int
    step: int = 1

    @classmethod
    def single(cls, value: int) -> "ParameterRange":
        return cls(start=value, end=value, step=1)

    def values(self, clamp_min: int = 0, clamp_max: int = 100) -> list[int]:
        """Inclusive, ascending, de-duplicated integer values clamped to the given bounds."""
        low = max(min(self.start, self.end), clamp_min)
        high = min(max(self.start, self.end), clamp_max)
        if low > high:
            return []
        step = max(abs(self.step) or 1, 1)

        values = set()
        if low == high:
            values.add(int(round(low)))
        else:
            value = low
            while value <= high:
                values.add(int(round(value)))
                value += step
            values.add(int(round(high)))
        return sorted(values)


@dataclass(frozen=True)
class SweepRanges:
    low: ParameterRange
    high: ParameterRange
    leverage: tuple[int, ...] = (1,)
    extreme_low: Optional[ParameterRange] = None
    extreme_high: Optional[ParameterRange] = None
