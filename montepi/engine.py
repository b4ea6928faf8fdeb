"""High-level orchestration for the pi estimation engine."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

import numpy as np

from .config import EngineSettings
from .core.convergence_validation import validate_convergence
from .core.executor import stream_batches
from .core.registry import (
    FALLBACK_STRATEGY,
    StrategyDescriptor,
    available_strategies,
    resolve_strategy,
)
from .core.statistics import (
    ConvergencePoint,
    ConvergenceRecorder,
    OnlineStatistics,
)
from .core.validator import validate_batch_size, validate_sample_count
from .models.results import ComparisonResult, SimulationResult, StrategyComparison
from .models.stream import CompletionMessage, SimulationProgressEvent, StreamRequest

LOGGER = logging.getLogger(__name__)

# Largest slice a comparison draws at once.
COMPARE_CHUNK_SIZE = 65_536


class PiEngine:
    """Primary entry point for configuring and running pi estimations."""

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or EngineSettings.from_env()
        self._strategy: StrategyDescriptor = resolve_strategy(FALLBACK_STRATEGY)
        self.sample_count = 0
        self.batch_size = validate_batch_size(self.settings.batch_size)
        self._rng = np.random.default_rng(self.settings.random_seed)
        self._statistics = OnlineStatistics(self._strategy.scaling_rule)
        self._last_result: Optional[SimulationResult] = None

    # ---------------------------------------------------------------- Settings
    @property
    def strategy(self) -> StrategyDescriptor:
        return self._strategy

    def set_strategy(self, key: str) -> StrategyDescriptor:
        """Select a strategy; unknown keys fall back to ``quarter``. Discards the current run."""
        self._strategy = resolve_strategy(key)
        self.reset()
        return self._strategy

    def set_sample_count(self, count: int) -> None:
        """Set the requested sample count (grid side for gpuGrid). Discards the current run."""
        self.sample_count = validate_sample_count(count)
        self.reset()

    def set_batch_size(self, batch_size: int) -> None:
        self.batch_size = validate_batch_size(batch_size)

    def reset(self) -> None:
        """Drop the accumulated statistics of the current run."""
        self._statistics = OnlineStatistics(self._strategy.scaling_rule)
        self._last_result = None

    # ----------------------------------------------------------------- Results
    @property
    def statistics(self) -> OnlineStatistics:
        return self._statistics

    @property
    def last_result(self) -> Optional[SimulationResult]:
        return self._last_result

    @property
    def estimate(self) -> Optional[float]:
        """Final estimate of the committed run, ``None`` when nothing was sampled."""
        return self._statistics.estimate

    def convergence_point(self) -> Optional[ConvergencePoint]:
        return self._statistics.snapshot()

    def request(self) -> StreamRequest:
        return StreamRequest(self._strategy.name, self.sample_count, self.batch_size)

    # --------------------------------------------------------------------- Run
    def run(
        self,
        *,
        rng: Optional[np.random.Generator] = None,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
        progress_observer: Optional[Callable[[SimulationProgressEvent], None]] = None,
    ) -> SimulationResult:
        """
        Stream the configured request through a fresh accumulator.

        The accumulator and result replace the engine's state only once the
        stream completes; if sampling fails the previous run stays intact.
        """
        request = self.request()
        strategy = self._strategy
        statistics = OnlineStatistics(strategy.scaling_rule)
        total_samples = strategy.stream_length(request.total)
        record = self.settings.record_convergence
        recorder = ConvergenceRecorder(strategy.scaling_rule, total_samples, self.settings.convergence_rows)

        LOGGER.info(
            "Running %s for %d samples in batches of %d",
            strategy.name,
            total_samples,
            request.batch_size,
        )
        started = time.perf_counter()
        stream = stream_batches(
            strategy,
            request.total,
            request.batch_size,
            rng=rng if rng is not None else self._rng,
            backend=self.settings.grid_backend,
        )
        for message in stream:
            if isinstance(message, CompletionMessage):
                break
            rows = statistics.update(message.values)
            if record:
                recorder.add(rows)
            self._notify(
                strategy,
                statistics,
                total_samples,
                message.sequence,
                progress_callback,
                progress_observer,
            )
        elapsed = time.perf_counter() - started

        convergence = recorder.frame()
        point = statistics.snapshot()
        metadata = {}
        if record:
            metadata["validation"] = validate_convergence(convergence).to_dict()
            metadata["convergence_thinned"] = recorder.thinned
        result = SimulationResult(
            strategy=strategy.name,
            scaling_rule=strategy.scaling_rule.value,
            requested=request.total,
            samples=statistics.count,
            batch_size=request.batch_size,
            estimate=statistics.estimate,
            standard_error=statistics.standard_error,
            lower_bound=point.lower_bound if point else None,
            upper_bound=point.upper_bound if point else None,
            elapsed_seconds=elapsed,
            convergence=convergence,
            metadata=metadata,
        )
        self._statistics = statistics
        self._last_result = result
        LOGGER.info("Finished %s: estimate=%s in %.3fs", strategy.name, result.estimate, elapsed)
        return result

    @staticmethod
    def _notify(
        strategy: StrategyDescriptor,
        statistics: OnlineStatistics,
        total_samples: int,
        batch_index: int,
        progress_callback: Optional[Callable[[int, int, str], None]],
        progress_observer: Optional[Callable[[SimulationProgressEvent], None]],
    ) -> None:
        if progress_callback:
            try:
                progress_callback(
                    statistics.count,
                    total_samples,
                    f"{strategy.name}: {statistics.count}/{total_samples} samples",
                )
            except Exception as exc:  # pragma: no cover
                LOGGER.warning("Progress callback failed: %s", exc)
        if progress_observer:
            point = statistics.snapshot()
            try:
                progress_observer(
                    SimulationProgressEvent(
                        strategy=strategy.name,
                        samples_seen=statistics.count,
                        total_samples=total_samples,
                        estimate=statistics.estimate,
                        lower_bound=point.lower_bound if point else None,
                        upper_bound=point.upper_bound if point else None,
                        standard_error=statistics.standard_error,
                        batch_index=batch_index,
                    )
                )
            except Exception as exc:  # pragma: no cover
                LOGGER.warning("Progress observer failed: %s", exc)

    # -------------------------------------------------------------- Comparison
    def compare(
        self,
        count: int,
        *,
        keys: Optional[Iterable[str]] = None,
        rng: Optional[np.random.Generator] = None,
        grid_side: Optional[int] = None,
    ) -> ComparisonResult:
        """
        Standard error on the pi scale for each registered strategy at ``count``.

        Every strategy gets its own draw. Grid strategies use ``grid_side``
        (default ``count``) as the side, so they evaluate ``grid_side**2``
        cells. Samples are folded in slices of at most ``COMPARE_CHUNK_SIZE``
        so memory stays flat for large requests.
        """
        count = validate_sample_count(count)
        side = count if grid_side is None else validate_sample_count(grid_side, name="grid side")
        generator = rng if rng is not None else self._rng
        chunk = max(self.batch_size, COMPARE_CHUNK_SIZE)
        result = ComparisonResult(requested=count)
        for key in keys if keys is not None else available_strategies():
            descriptor = resolve_strategy(key)
            requested = side if descriptor.grid else count
            statistics = OnlineStatistics(descriptor.scaling_rule)
            for message in stream_batches(
                descriptor,
                requested,
                chunk,
                rng=generator,
                backend=self.settings.grid_backend,
            ):
                if isinstance(message, CompletionMessage):
                    break
                statistics.aggregate.extend(message.values)
            result.add(
                StrategyComparison(
                    strategy=descriptor.name,
                    samples=statistics.count,
                    estimate=statistics.estimate,
                    standard_error=statistics.standard_error,
                )
            )
        return result


__all__ = ["PiEngine"]
