"""Performance metrics derived from a finished run."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence


@dataclass
class DrawdownTracker:
    peak_equity: Decimal
    max_drawdown: Decimal = Decimal("0")

    def update(self, equity: Decimal) -> Decimal:
        if equity > self.peak_equity:
            self.peak_equity = equity
        if self.peak_equity <= 0:
            return self.max_drawdown
        drawdown = (self.peak_equity - equity) / self.peak_equity
        if drawdown > self.max_drawdown:
            self.max_drawdown = drawdown
        return drawdown

    def max_drawdown_pct(self) -> float:
        return float(self.max_drawdown * 100)


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def population_stdev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(math.fsum((value - avg) ** 2 for value in values) / len(values))


def sharpe_ratio(returns: Sequence[float], periods_per_year: float) -> float:
    volatility = population_stdev(returns)
    if volatility <= 0:
        return 0.0
    return mean(returns) / volatility * math.sqrt(periods_per_year)
