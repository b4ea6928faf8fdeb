"""Background execution helpers for streaming runs."""

from .simulation_runner import SimulationRunner

__all__ = ["SimulationRunner"]
