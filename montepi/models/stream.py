"""Data models for streaming batch execution and progress reporting."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np

from ..core.validator import validate_batch_size, validate_sample_count


@dataclass(frozen=True)
class StreamRequest:
    """A streaming run: strategy key, total requested samples and batch size."""

    strategy_key: str
    total: int
    batch_size: int = 1000

    def __post_init__(self) -> None:
        object.__setattr__(self, "total", validate_sample_count(self.total, name="total"))
        object.__setattr__(self, "batch_size", validate_batch_size(self.batch_size))


@dataclass(frozen=True, eq=False)
class BatchMessage:
    """One emitted batch; ``offset`` is the logical index of its first sample."""

    sequence: int
    offset: int
    values: np.ndarray
    points: Optional[np.ndarray] = None

    @property
    def size(self) -> int:
        return int(self.values.shape[0])

    def to_dict(self) -> dict:
        return {
            "points": None if self.points is None else self.points.tolist(),
            "values": self.values.tolist(),
        }


@dataclass(frozen=True)
class CompletionMessage:
    """Terminal message sent once every batch has been emitted."""

    batches: int
    samples: int
    done: bool = True

    def to_dict(self) -> dict:
        return {"done": True}


StreamMessage = Union[BatchMessage, CompletionMessage]


@dataclass(frozen=True)
class SimulationProgressEvent:
    """
    Progress update emitted after each consumed batch.

    Kept small so it can be forwarded to dashboards as-is.
    """

    strategy: str
    samples_seen: int
    total_samples: int
    estimate: Optional[float]
    lower_bound: Optional[float]
    upper_bound: Optional[float]
    standard_error: Optional[float]
    batch_index: int
    timestamp: float = field(default_factory=time.time)

    @property
    def fraction_complete(self) -> float:
        if self.total_samples <= 0:
            return 1.0
        return min(self.samples_seen / self.total_samples, 1.0)


__all__ = [
    "BatchMessage",
    "CompletionMessage",
    "SimulationProgressEvent",
    "StreamMessage",
    "StreamRequest",
]
