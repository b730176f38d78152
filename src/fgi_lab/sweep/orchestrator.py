"""Parameter sweep orchestration across combinations and rolling windows."""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Optional, Sequence

from fgi_lab.simulator.engine import StrategySimulator
from fgi_lab.simulator.models import Sample, SimulationParameters, SimulationResult, SimulationSettings, Window
from fgi_lab.simulator.windows import generate_windows
from fgi_lab.store.models import RunMeta
from fgi_lab.sweep.cancellation import CancellationToken
from fgi_lab.sweep.grid import generate_combinations
from fgi_lab.sweep.models import ExecutorKind, SweepObjective, SweepRanges
from fgi_lab.sweep.ranking import rank_results, summarize

LOG = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL_SECONDS = 1.0

# one series (or window slice) and the combinations to run on it
_Group = tuple[Sequence[Sample], Optional[Window], list[SimulationParameters]]


def _simulate_batch(
    settings: SimulationSettings,
    samples: Sequence[Sample],
    batch: Sequence[SimulationParameters],
) -> list[SimulationResult]:
    simulator = StrategySimulator(settings)
    return [simulator.simulate(samples, params) for params in batch]


class SweepOrchestrator:
    def __init__(
        self,
        settings: Optional[SimulationSettings] = None,
        max_workers: int = 4,
        executor: ExecutorKind | str = ExecutorKind.PROCESS,
        objective: SweepObjective | str = SweepObjective.TOTAL_RETURN,
    ) -> None:
        self.settings = settings or SimulationSettings()
        self.max_workers = max(1, int(max_workers))
        self.executor_kind = ExecutorKind(executor)
        self.objective = SweepObjective(objective)
        self._simulator = StrategySimulator(self.settings)

    def combinations(self, ranges: SweepRanges, base: SimulationParameters) -> list[SimulationParameters]:
        combos = generate_combinations(ranges, base)
        for params in combos:
            params.validate()
        return combos

    def sweep(
        self,
        series: Sequence[Sample],
        ranges: SweepRanges,
        base: SimulationParameters,
        windows: Optional[Sequence[Window]] = None,
        token: Optional[CancellationToken] = None,
    ) -> list[SimulationResult]:
        samples = list(series)
        combos = self.combinations(ranges, base)
        groups = self._groups(samples, combos, windows)
        LOG.info(
            "Sweep started: %d combinations x %d windows = %d runs",
            len(combos),
            len(groups),
            len(combos) * len(groups),
        )
        results = self._execute(groups, token or CancellationToken())
        return rank_results(results, self.objective)

    def run_rolling(
        self,
        series: Sequence[Sample],
        window_days: int,
        ranges: SweepRanges,
        base: SimulationParameters,
        store=None,
        meta: Optional[RunMeta] = None,
        token: Optional[CancellationToken] = None,
    ) -> list[SimulationResult]:
        """Sweep every rolling window, persisting each window's batch as one transaction."""
        if store is not None and meta is None:
            raise ValueError("meta is required when persisting to a store")
        token = token or CancellationToken()
        samples = list(series)
        windows = generate_windows(samples, window_days)
        combos = self.combinations(ranges, base)
        LOG.info(
            "Rolling sweep: %d windows of %d days, %d combinations per window",
            len(windows),
            window_days,
            len(combos),
        )

        collected: list[SimulationResult] = []
        for position, window in enumerate(windows, start=1):
            token.raise_if_cancelled()
            LOG.info(
                "[Window %d/%d] %s -> %s (%d points)",
                position,
                len(windows),
                window.start_timestamp.isoformat(),
                window.end_timestamp.isoformat(),
                window.sample_count,
            )
            results = self._execute(self._groups(samples, combos, [window]), token)
            if not results:
                continue
            if store is not None:
                store.persist(meta, results)

            summary = summarize(results)
            best = summary.best_return.params
            LOG.info(
                "    Best return: %.1f%% (%dx, low<=%s, high>=%s)",
                summary.best_return.total_return_pct,
                best.leverage,
                best.low_threshold,
                best.high_threshold,
            )
            LOG.info(
                "    Best Sharpe: %.2f (%.1f%% return)",
                summary.best_sharpe.sharpe_ratio,
                summary.best_sharpe.total_return_pct,
            )
            collected.extend(results)
        return rank_results(collected, self.objective)

    @staticmethod
    def _groups(
        samples: list[Sample],
        combos: list[SimulationParameters],
        windows: Optional[Sequence[Window]],
    ) -> list[_Group]:
        if windows is None:
            return [(samples, None, combos)]
        return [(window.slice(samples), window, combos) for window in windows]

    def _batches(self, groups: list[_Group]) -> list[_Group]:
        """Split each group into at most ``max_workers`` chunks of combinations.

        A worker receives a window's samples once per chunk rather than once
        per combination.
        """
        batches: list[_Group] = []
        for samples, window, combos in groups:
            size = max(1, math.ceil(len(combos) / self.max_workers))
            for start in range(0, len(combos), size):
                batches.append((samples, window, combos[start : start + size]))
        return batches

    def _make_executor(self) -> Executor:
        if self.executor_kind == ExecutorKind.PROCESS:
            return ProcessPoolExecutor(max_workers=self.max_workers)
        return ThreadPoolExecutor(max_workers=self.max_workers)

    @staticmethod
    def _attach(result: SimulationResult, window: Optional[Window]) -> SimulationResult:
        if window is None:
            return result
        return replace(result, window=window)

    def _execute(self, groups: list[_Group], token: CancellationToken) -> list[SimulationResult]:
        total = sum(len(combos) for _, _, combos in groups)
        if not total:
            return []
        progress = _Progress(total)

        if self.executor_kind == ExecutorKind.SERIAL or self.max_workers == 1:
            serial: list[SimulationResult] = []
            for samples, window, combos in groups:
                for params in combos:
                    token.raise_if_cancelled()
                    serial.append(self._attach(self._simulator.simulate(samples, params), window))
                    progress.tick()
            return serial

        batches = self._batches(groups)
        # results are placed by submission index so completion order never leaks into the output
        slots: list[Optional[list[SimulationResult]]] = [None] * len(batches)
        with self._make_executor() as executor:
            futures = {}
            for index, (samples, _, combos) in enumerate(batches):
                if token.cancelled:
                    break
                futures[executor.submit(_simulate_batch, self.settings, samples, combos)] = index
            try:
                for future in as_completed(futures):
                    token.raise_if_cancelled()
                    index = futures[future]
                    window = batches[index][1]
                    slots[index] = [self._attach(result, window) for result in future.result()]
                    progress.tick(len(slots[index]))
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        if token.cancelled:
            LOG.warning("Sweep cancelled after %d/%d runs", progress.done, progress.total)
            token.raise_if_cancelled()
        return [result for batch in slots if batch is not None for result in batch]


class _Progress:
    def __init__(self, total: int) -> None:
        self.total = total
        self.done = 0
        self._last_log = time.monotonic()

    def tick(self, count: int = 1) -> None:
        self.done += count
        now = time.monotonic()
        if self.done == self.total or now - self._last_log >= PROGRESS_LOG_INTERVAL_SECONDS:
            LOG.debug("Progress %d/%d (%.2f%%)", self.done, self.total, self.done / self.total * 100)
            self._last_log = now


def sweep(
    series: Sequence[Sample],
    ranges: SweepRanges,
    base: SimulationParameters,
    settings: Optional[SimulationSettings] = None,
    windows: Optional[Sequence[Window]] = None,
    max_workers: int = 4,
    executor: ExecutorKind | str = ExecutorKind.THREAD,
    objective: SweepObjective | str = SweepObjective.TOTAL_RETURN,
    token: Optional[CancellationToken] = None,
) -> list[SimulationResult]:
    orchestrator = SweepOrchestrator(settings, max_workers=max_workers, executor=executor, objective=objective)
    return orchestrator.sweep(series, ranges, base, windows=windows, token=token)
