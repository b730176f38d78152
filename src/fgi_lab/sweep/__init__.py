"""Parameter sweeps over thresholds, leverage and rolling windows."""

from fgi_lab.sweep.cancellation import CancellationToken
from fgi_lab.sweep.errors import SweepCancelled
from fgi_lab.sweep.grid import expand_range, generate_combinations
from fgi_lab.sweep.models import ExecutorKind, ParameterRange, SweepObjective, SweepRanges
from fgi_lab.sweep.orchestrator import SweepOrchestrator, sweep
from fgi_lab.sweep.ranking import SweepSummary, rank_results, summarize

__all__ = [
    "CancellationToken",
    "ExecutorKind",
    "ParameterRange",
    "SweepCancelled",
    "SweepObjective",
    "SweepOrchestrator",
    "SweepRanges",
    "SweepSummary",
    "expand_range",
    "generate_combinations",
    "rank_results",
    "summarize",
    "sweep",
]
