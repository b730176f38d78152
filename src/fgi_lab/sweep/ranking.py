"""Rank sweep results and summarize a batch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from fgi_lab.simulator.models import SimulationResult
from fgi_lab.sweep.models import SweepObjective


def rank_results(
    results: Iterable[SimulationResult],
    objective: SweepObjective | str = SweepObjective.TOTAL_RETURN,
) -> list[SimulationResult]:
    """Best first; ties go to lower drawdown, then fewer liquidations.

    The sort is stable, so fully tied results keep their submission order.
    """
    metric = SweepObjective(objective).value
    return sorted(
        results,
        key=lambda result: (-result.metric(metric), result.max_drawdown_pct, result.liquidation_count),
    )


@dataclass(frozen=True)
class SweepSummary:
    total_runs: int
    liquidated_runs: int
    profitable_pct: float
    average_return_pct: float
    average_sharpe: float
    best_return: Optional[SimulationResult]
    best_sharpe: Optional[SimulationResult]


def summarize(results: Iterable[SimulationResult]) -> SweepSummary:
    results_list = list(results)
    total = len(results_list)
    if total == 0:
        return SweepSummary(0, 0, 0.0, 0.0, 0.0, None, None)

    profitable = sum(1 for result in results_list if result.total_return_pct > 0)
    return SweepSummary(
        total_runs=total,
        liquidated_runs=sum(1 for result in results_list if result.liquidation_count > 0),
        profitable_pct=profitable / total * 100,
        average_return_pct=sum(result.total_return_pct for result in results_list) / total,
        average_sharpe=sum(result.sharpe_ratio for result in results_list) / total,
        best_return=rank_results(results_list, SweepObjective.TOTAL_RETURN)[0],
        best_sharpe=rank_results(results_list, SweepObjective.SHARPE)[0],
    )
