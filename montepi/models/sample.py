"""Sample batch container produced by every sampling strategy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class SampleBatch:
    """
    Ordered samples from one strategy call.

    ``points`` is an ``(n, 2)`` array for visualisable strategies and ``None``
    otherwise; ``values`` always holds ``n`` scalar contributions to the
    estimate, in generation order.
    """

    values: np.ndarray
    points: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        values = np.asarray(self.values, dtype=float).reshape(-1)
        object.__setattr__(self, "values", values)
        if self.points is not None:
            points = np.asarray(self.points, dtype=float).reshape(-1, 2)
            if points.shape[0] != values.shape[0]:
                raise ValueError(
                    f"points/values length mismatch: {points.shape[0]} != {values.shape[0]}"
                )
            object.__setattr__(self, "points", points)

    def __len__(self) -> int:
        return int(self.values.shape[0])

    @property
    def has_points(self) -> bool:
        return self.points is not None

    def pairs(self) -> List[Tuple[Optional[Tuple[float, float]], float]]:
        """Return ``(point, value)`` tuples; ``point`` is ``None`` when absent."""
        if self.points is None:
            return [(None, float(v)) for v in self.values]
        return [((float(p[0]), float(p[1])), float(v)) for p, v in zip(self.points, self.values)]

    @classmethod
    def empty(cls, *, with_points: bool = True) -> "SampleBatch":
        return cls(
            values=np.empty(0, dtype=float),
            points=np.empty((0, 2), dtype=float) if with_points else None,
        )

    @classmethod
    def concatenate(cls, batches: Iterable["SampleBatch"]) -> "SampleBatch":
        """Join batches in emission order."""
        batches = list(batches)
        if not batches:
            return cls.empty()
        values = np.concatenate([batch.values for batch in batches])
        if all(batch.points is not None for batch in batches):
            points = np.concatenate([batch.points for batch in batches], axis=0)
        else:
            points = None
        return cls(values=values, points=points)


__all__ = ["SampleBatch"]
