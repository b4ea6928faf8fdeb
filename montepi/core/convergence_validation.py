"""Sanity checks for convergence tables produced by a run."""

from __future__ import annotations

from dataclasses import dataclass
from math import pi
from typing import Dict, Sequence

import numpy as np
import pandas as pd

BAND_WIDTH_FOR_WARNING = 3.0


@dataclass
class ValidationResult:
    """Basic container for validation outcomes."""

    status: str
    failed_checks: Sequence[str]
    warnings: Sequence[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "failed_checks": list(self.failed_checks),
            "warnings": list(self.warnings),
        }


def validate_convergence(frame: pd.DataFrame) -> ValidationResult:
    """Check a convergence table for numerical problems and implausible results."""
    failed: list[str] = []
    warnings: list[str] = []
    if frame is None or frame.empty:
        warnings.append("no_samples")
        return ValidationResult(status="PASS", failed_checks=failed, warnings=warnings)

    numeric = frame[["estimate", "lower_bound", "upper_bound", "variance"]].to_numpy(dtype=float)
    if not np.all(np.isfinite(numeric)):
        failed.append("nan_or_inf_statistics")
    else:
        lower = frame["lower_bound"].to_numpy(dtype=float)
        estimate = frame["estimate"].to_numpy(dtype=float)
        upper = frame["upper_bound"].to_numpy(dtype=float)
        if np.any(lower > estimate) or np.any(estimate > upper):
            failed.append("band_ordering")

    if float(frame["variance"].min()) < 0.0:
        failed.append("negative_variance")

    last = frame.iloc[-1]
    if not failed:
        half_width = float(last["upper_bound"] - last["estimate"])
        if abs(float(last["estimate"]) - pi) > BAND_WIDTH_FOR_WARNING * half_width:
            warnings.append("band_excludes_pi")
        if int(last["index"]) > 1 and float(last["variance"]) == 0.0:
            warnings.append("zero_variance")

    status = "PASS" if not failed else "FAIL"
    return ValidationResult(status=status, failed_checks=failed, warnings=warnings)


__all__ = ["ValidationResult", "validate_convergence"]
