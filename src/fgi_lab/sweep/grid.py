"""Expand sweep ranges into valid parameter combinations."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from fgi_lab.simulator.models import SimulationParameters
from fgi_lab.sweep.models import ParameterRange, SweepRanges


def expand_range(value_range: ParameterRange, clamp_min: int = 0, clamp_max: int = 100) -> list[int]:
    return value_range.values(clamp_min=clamp_min, clamp_max=clamp_max)


def _optional_values(value_range: Optional[ParameterRange]) -> list[Optional[int]]:
    if value_range is None:
        return [None]
    return list(expand_range(value_range))


def generate_combinations(ranges: SweepRanges, base: SimulationParameters) -> list[SimulationParameters]:
    """Cartesian product of the ranges, dropping threshold orderings that cannot be simulated.

    Order is leverage, low, high, extreme low, extreme high, so the output is
    stable for a given input.
    """
    low_values = expand_range(ranges.low)
    high_values = expand_range(ranges.high)
    extreme_low_values = _optional_values(ranges.extreme_low)
    extreme_high_values = _optional_values(ranges.extreme_high)
    leverages = sorted(dict.fromkeys(ranges.leverage))

    combinations: list[SimulationParameters] = []
    for leverage in leverages:
        for low in low_values:
            for high in high_values:
                if low >= high:
                    continue
                for extreme_low in extreme_low_values:
                    if extreme_low is not None and extreme_low > low:
                        continue
                    for extreme_high in extreme_high_values:
                        if extreme_high is not None and extreme_high < high:
                            continue
                        combinations.append(
                            replace(
                                base,
                                leverage=leverage,
                                low_threshold=low,
                                high_threshold=high,
                                extreme_low_threshold=extreme_low,
                                extreme_high_threshold=extreme_high,
                            )
                        )
    return combinations
