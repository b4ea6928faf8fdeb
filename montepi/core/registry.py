"""Fixed registry of sampling strategies keyed by name."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np

from ..config import GRID_BACKEND
from ..models.sample import SampleBatch
from . import strategies
from .validator import validate_sample_count

LOGGER = logging.getLogger(__name__)

FALLBACK_STRATEGY = "quarter"


class ScalingRule(str, Enum):
    """How the mean of raw values maps onto an estimate of pi."""

    QUARTER_CIRCLE = "quarter_circle"  # mean * 4
    DIRECT_INTEGRAL = "direct_integral"  # mean as-is

    @property
    def factor(self) -> float:
        return 4.0 if self is ScalingRule.QUARTER_CIRCLE else 1.0


@dataclass(frozen=True)
class StrategyDescriptor:
    """Registry entry describing one sampling strategy."""

    name: str
    scaling_rule: ScalingRule
    sampler: Callable[..., SampleBatch]
    description: str = ""
    position_dependent: bool = False
    visualizable: bool = True
    grid: bool = False

    def stream_length(self, requested: int) -> int:
        """Number of samples produced for a request of ``requested``."""
        requested = validate_sample_count(requested)
        return requested * requested if self.grid else requested

    def ensure_supported(self, *, backend: Optional[str] = None) -> None:
        """Raise ``UnsupportedExecutionEnvironment`` before any sampling starts."""
        if self.grid:
            strategies.ensure_grid_backend(backend or GRID_BACKEND)

    def draw(
        self,
        count: int,
        *,
        offset: int = 0,
        requested: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        backend: Optional[str] = None,
    ) -> SampleBatch:
        """
        Produce ``count`` samples starting at logical index ``offset``.

        ``requested`` is the caller's original request; grid strategies need it
        as the side length of the grid being streamed.
        """
        if self.grid:
            if requested is None:
                raise ValueError("Grid strategies need the requested grid side")
            return self.sampler(
                requested,
                offset=offset,
                count=count,
                rng=rng,
                backend=backend or GRID_BACKEND,
            )
        return self.sampler(count, offset=offset, rng=rng)

    def sample(
        self,
        n: int,
        *,
        rng: Optional[np.random.Generator] = None,
        backend: Optional[str] = None,
    ) -> SampleBatch:
        """One-shot sampling: ``n`` samples, or ``n**2`` cells for grid strategies."""
        total = self.stream_length(n)
        return self.draw(total, offset=0, requested=n, rng=rng, backend=backend)


_REGISTRY: Dict[str, StrategyDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        StrategyDescriptor(
            name="quarter",
            scaling_rule=ScalingRule.QUARTER_CIRCLE,
            sampler=strategies.quarter,
            description="Uniform rejection sampling in the unit square",
        ),
        StrategyDescriptor(
            name="quasi",
            scaling_rule=ScalingRule.QUARTER_CIRCLE,
            sampler=strategies.quasi,
            description="Halton low-discrepancy points (bases 2 and 3)",
            position_dependent=True,
        ),
        StrategyDescriptor(
            name="integral",
            scaling_rule=ScalingRule.DIRECT_INTEGRAL,
            sampler=strategies.integral,
            description="Direct quadrature of 4*sqrt(1-x^2)",
            visualizable=False,
        ),
        StrategyDescriptor(
            name="buffon",
            scaling_rule=ScalingRule.QUARTER_CIRCLE,
            sampler=strategies.buffon,
            description="Buffon's needle crossing indicator",
        ),
        StrategyDescriptor(
            name="polar",
            scaling_rule=ScalingRule.QUARTER_CIRCLE,
            sampler=strategies.polar,
            description="Uniform polar coordinates mapped to the plane",
        ),
        StrategyDescriptor(
            name="importance",
            scaling_rule=ScalingRule.DIRECT_INTEGRAL,
            sampler=strategies.importance,
            description="Importance-weighted quadrature with x = sin(pi*u/2)",
        ),
        StrategyDescriptor(
            name="gpuGrid",
            scaling_rule=ScalingRule.QUARTER_CIRCLE,
            sampler=strategies.gpu_grid,
            description="Deterministic n x n grid of cell centres",
            position_dependent=True,
            grid=True,
        ),
    )
}


def available_strategies() -> List[str]:
    """Registered strategy keys in registration order."""
    return list(_REGISTRY)


def get_descriptor(key: str) -> Optional[StrategyDescriptor]:
    return _REGISTRY.get(key)


def resolve_strategy(key: Optional[str]) -> StrategyDescriptor:
    """Look up ``key``; unknown keys resolve to the ``quarter`` strategy."""
    descriptor = _REGISTRY.get(key) if key is not None else None
    if descriptor is None:
        LOGGER.warning("Unknown strategy %r; falling back to %r", key, FALLBACK_STRATEGY)
        return _REGISTRY[FALLBACK_STRATEGY]
    return descriptor


def sample(
    strategy_key: Optional[str],
    n: int,
    *,
    rng: Optional[np.random.Generator] = None,
    backend: Optional[str] = None,
) -> SampleBatch:
    """Sample ``n`` points (``n**2`` for gpuGrid) from the named strategy."""
    n = validate_sample_count(n)
    descriptor = resolve_strategy(strategy_key)
    descriptor.ensure_supported(backend=backend)
    return descriptor.sample(n, rng=rng, backend=backend)


__all__ = [
    "FALLBACK_STRATEGY",
    "ScalingRule",
    "StrategyDescriptor",
    "available_strategies",
    "get_descriptor",
    "resolve_strategy",
    "sample",
]
