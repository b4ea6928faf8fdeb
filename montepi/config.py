"""Environment-driven settings for the estimation engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from exc


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Environment variable {name} must be a boolean flag, got {raw!r}")


DEFAULT_BATCH_SIZE = 1000
# Upper bound on retained convergence rows per run; longer runs are thinned.
DEFAULT_CONVERGENCE_ROWS = 100_000
GRID_BACKEND = os.environ.get("MONTEPI_GRID_BACKEND", "cpu").strip().lower() or "cpu"
LOG_LEVEL = os.environ.get("MONTEPI_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
RANDOM_SEED = _env_int("MONTEPI_RANDOM_SEED", None)


@dataclass
class EngineSettings:
    """Runtime knobs shared by the engine, runner and CLI."""

    batch_size: int = DEFAULT_BATCH_SIZE
    grid_backend: str = "cpu"
    random_seed: Optional[int] = None
    record_convergence: bool = True
    convergence_rows: Optional[int] = DEFAULT_CONVERGENCE_ROWS

    def __post_init__(self) -> None:
        if self.convergence_rows is not None and self.convergence_rows < 1:
            raise ValueError("convergence_rows must be at least 1 (or None to keep every row)")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from the current process environment."""
        return cls(
            batch_size=int(_env_int("MONTEPI_BATCH_SIZE", DEFAULT_BATCH_SIZE)),
            grid_backend=os.environ.get("MONTEPI_GRID_BACKEND", GRID_BACKEND).strip().lower() or "cpu",
            random_seed=_env_int("MONTEPI_RANDOM_SEED", RANDOM_SEED),
            record_convergence=_env_flag("MONTEPI_RECORD_CONVERGENCE", True),
            convergence_rows=_env_int("MONTEPI_CONVERGENCE_ROWS", DEFAULT_CONVERGENCE_ROWS),
        )


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CONVERGENCE_ROWS",
    "EngineSettings",
    "GRID_BACKEND",
    "LOG_LEVEL",
    "RANDOM_SEED",
]
