"""Monte Carlo estimation of pi with streaming convergence statistics."""

from __future__ import annotations

from .core.registry import ScalingRule, StrategyDescriptor, available_strategies, resolve_strategy, sample
from .core.statistics import ConvergencePoint, OnlineStatistics, RunningAggregate
from .core.validator import EngineError, InvalidSampleCount, UnsupportedExecutionEnvironment
from .engine import PiEngine

__all__ = [
    "ConvergencePoint",
    "EngineError",
    "InvalidSampleCount",
    "OnlineStatistics",
    "PiEngine",
    "RunningAggregate",
    "ScalingRule",
    "StrategyDescriptor",
    "UnsupportedExecutionEnvironment",
    "available_strategies",
    "resolve_strategy",
    "sample",
]
