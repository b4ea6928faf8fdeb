"""Online statistics turning a stream of sample values into pi estimates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from ..utils.data_reduction import log_spaced_indices
from .registry import ScalingRule

CONVERGENCE_COLUMNS = [
    "index",
    "estimate",
    "variance",
    "standard_error",
    "lower_bound",
    "upper_bound",
]

ValuesLike = Union[np.ndarray, Iterable[float]]


@dataclass
class RunningAggregate:
    """Count, sum and sum of squares of the values seen so far."""

    count: int = 0
    sum: float = 0.0
    sum_of_squares: float = 0.0

    def push(self, value: float) -> None:
        value = float(value)
        self.count += 1
        self.sum += value
        self.sum_of_squares += value * value

    def extend(self, values: ValuesLike) -> None:
        """
        Fold ``values`` in arrival order.

        Sums are accumulated strictly left to right, so splitting a stream into
        batches of any size yields bit-identical totals.
        """
        arr = np.asarray(values, dtype=float).reshape(-1)
        if arr.size == 0:
            return
        self.sum = float(np.add.accumulate(np.concatenate(([self.sum], arr)))[-1])
        self.sum_of_squares = float(
            np.add.accumulate(np.concatenate(([self.sum_of_squares], arr * arr)))[-1]
        )
        self.count += int(arr.size)

    @property
    def mean(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.sum / self.count

    @property
    def variance(self) -> Optional[float]:
        """Plug-in variance, clamped at zero."""
        if self.count == 0:
            return None
        mean = self.sum / self.count
        return max(self.sum_of_squares / self.count - mean * mean, 0.0)

    def copy(self) -> "RunningAggregate":
        return RunningAggregate(self.count, self.sum, self.sum_of_squares)


@dataclass(frozen=True)
class ConvergencePoint:
    """Estimate and one-standard-error band after ``index`` samples."""

    index: int
    estimate: float
    lower_bound: float
    upper_bound: float

    @classmethod
    def from_aggregate(cls, aggregate: RunningAggregate, scaling_rule: ScalingRule) -> Optional["ConvergencePoint"]:
        if aggregate.count == 0:
            return None
        factor = scaling_rule.factor
        mean = aggregate.sum / aggregate.count
        variance = max(aggregate.sum_of_squares / aggregate.count - mean * mean, 0.0)
        delta = factor * np.sqrt(variance / aggregate.count)
        estimate = factor * mean
        return cls(
            index=aggregate.count,
            estimate=float(estimate),
            lower_bound=float(estimate - delta),
            upper_bound=float(estimate + delta),
        )


def _prefix_frame(
    values: np.ndarray,
    scaling_rule: ScalingRule,
    start: RunningAggregate,
) -> pd.DataFrame:
    if values.size == 0:
        return pd.DataFrame({column: pd.Series(dtype=float) for column in CONVERGENCE_COLUMNS}).astype(
            {"index": "int64"}
        )
    sums = np.add.accumulate(np.concatenate(([start.sum], values)))[1:]
    squares = np.add.accumulate(np.concatenate(([start.sum_of_squares], values * values)))[1:]
    index = np.arange(start.count + 1, start.count + values.size + 1, dtype=np.int64)
    mean = sums / index
    variance = np.maximum(squares / index - mean * mean, 0.0)
    standard_error = np.sqrt(variance / index)
    factor = scaling_rule.factor
    estimate = factor * mean
    delta = factor * standard_error
    return pd.DataFrame(
        {
            "index": index,
            "estimate": estimate,
            "variance": variance,
            "standard_error": standard_error,
            "lower_bound": estimate - delta,
            "upper_bound": estimate + delta,
        }
    )


def convergence_frame(values: ValuesLike, scaling_rule: ScalingRule) -> pd.DataFrame:
    """
    Cumulative estimate and error band at every prefix length of ``values``.

    ``variance`` and ``standard_error`` are on the raw-value scale; ``estimate``
    and the bounds are on the pi scale.
    """
    arr = np.asarray(values, dtype=float).reshape(-1)
    return _prefix_frame(arr, scaling_rule, RunningAggregate())


def standard_error_on_pi_scale(values: ValuesLike, scaling_rule: ScalingRule) -> Optional[float]:
    """Standard error of the final estimate, converted to the pi scale."""
    aggregate = RunningAggregate()
    aggregate.extend(values)
    if aggregate.count == 0:
        return None
    return float(scaling_rule.factor * np.sqrt(aggregate.variance / aggregate.count))


class ConvergenceRecorder:
    """
    Collect the convergence rows of a run of known length.

    When the run is longer than ``max_rows`` only rows at log-spaced sample
    counts are retained, so the table stays bounded however many samples are
    streamed. ``max_rows=None`` keeps every row.
    """

    def __init__(self, scaling_rule: ScalingRule, total: int, max_rows: Optional[int] = None) -> None:
        self.scaling_rule = scaling_rule
        self._keep: Optional[np.ndarray] = None
        if max_rows is not None and total > max_rows:
            self._keep = log_spaced_indices(total, max_rows) + 1
        self._frames: List[pd.DataFrame] = []

    @property
    def thinned(self) -> bool:
        return self._keep is not None

    def add(self, rows: pd.DataFrame) -> None:
        if self._keep is not None:
            rows = rows[np.isin(rows["index"].to_numpy(), self._keep)]
        if not rows.empty:
            self._frames.append(rows)

    def frame(self) -> pd.DataFrame:
        if not self._frames:
            return convergence_frame([], self.scaling_rule)
        return pd.concat(self._frames, ignore_index=True)


class OnlineStatistics:
    """Incremental accumulator for one simulation run."""

    def __init__(self, scaling_rule: ScalingRule) -> None:
        self.scaling_rule = scaling_rule
        self.aggregate = RunningAggregate()

    def update(self, values: ValuesLike) -> pd.DataFrame:
        """Fold a batch and return convergence rows for the new indices only."""
        arr = np.asarray(values, dtype=float).reshape(-1)
        frame = _prefix_frame(arr, self.scaling_rule, self.aggregate)
        self.aggregate.extend(arr)
        return frame

    def reset(self, scaling_rule: Optional[ScalingRule] = None) -> None:
        if scaling_rule is not None:
            self.scaling_rule = scaling_rule
        self.aggregate = RunningAggregate()

    @property
    def count(self) -> int:
        return self.aggregate.count

    @property
    def estimate(self) -> Optional[float]:
        """Current estimate of pi, or ``None`` before any data arrives."""
        mean = self.aggregate.mean
        return None if mean is None else self.scaling_rule.factor * mean

    @property
    def standard_error(self) -> Optional[float]:
        """Standard error on the pi scale."""
        variance = self.aggregate.variance
        if variance is None:
            return None
        return float(self.scaling_rule.factor * np.sqrt(variance / self.aggregate.count))

    def snapshot(self) -> Optional[ConvergencePoint]:
        return ConvergencePoint.from_aggregate(self.aggregate, self.scaling_rule)


__all__ = [
    "CONVERGENCE_COLUMNS",
    "ConvergenceRecorder",
    "ConvergencePoint",
    "OnlineStatistics",
    "RunningAggregate",
    "convergence_frame",
    "standard_error_on_pi_scale",
]
