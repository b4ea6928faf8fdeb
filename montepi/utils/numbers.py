"""Numeric display helpers shared across the application."""

from __future__ import annotations

from typing import Optional

NO_DATA = "N/A"


def format_estimate(value: Optional[float], digits: int = 4) -> str:
    """Format an estimate, rendering ``None`` as the no-data sentinel."""
    if value is None:
        return NO_DATA
    return f"{value:.{digits}f}"


def format_error(value: Optional[float]) -> str:
    if value is None:
        return NO_DATA
    return f"{value:.3e}"


__all__ = ["NO_DATA", "format_error", "format_estimate"]
