"""Result data models for reporting."""

from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class SimulationResult(BaseModel):
    """Outcome of one completed streaming run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    strategy: str = Field(..., description="Resolved strategy key")
    scaling_rule: str = Field(..., description="Scaling rule applied to the mean")
    requested: int = Field(..., description="Caller's requested count (grid side for gpuGrid)")
    samples: int = Field(..., description="Number of samples actually consumed")
    batch_size: int = Field(..., description="Batch size used by the executor")
    estimate: Optional[float] = Field(default=None, description="Final estimate, None when no data")
    standard_error: Optional[float] = Field(default=None, description="Standard error on the pi scale")
    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None
    elapsed_seconds: float = 0.0
    convergence: pd.DataFrame = Field(
        default_factory=pd.DataFrame,
        description=(
            "Per-prefix statistics with columns "
            "['index', 'estimate', 'variance', 'standard_error', 'lower_bound', 'upper_bound']"
        ),
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "samples": self.samples,
            "estimate": self.estimate,
            "standard_error": self.standard_error,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "elapsed_seconds": self.elapsed_seconds,
        }


class StrategyComparison(BaseModel):
    """Standard error of one strategy at a fixed request size."""

    strategy: str
    samples: int
    estimate: Optional[float] = None
    standard_error: Optional[float] = None


class ComparisonResult(BaseModel):
    """Side-by-side standard errors for every registered strategy."""

    requested: int = Field(..., description="Requested sample count N")
    rows: Dict[str, StrategyComparison] = Field(default_factory=dict)

    def add(self, row: StrategyComparison) -> None:
        self.rows[row.strategy] = row

    @property
    def standard_errors(self) -> Dict[str, Optional[float]]:
        return {key: row.standard_error for key, row in self.rows.items()}

    def summary_frame(self) -> pd.DataFrame:
        if not self.rows:
            return pd.DataFrame(columns=["strategy", "samples", "estimate", "standard_error"])
        return pd.DataFrame([row.model_dump() for row in self.rows.values()])
