"""
Sampling strategies for estimating pi.

Each strategy maps a sample count to a :class:`SampleBatch`. Strategies whose
output depends on absolute position (``quasi`` and ``gpu_grid``) take an index
``offset`` so that a stream split into batches reproduces the single-call
sequence; the others ignore it and draw fresh uniforms from ``rng``.
"""

from __future__ import annotations

import importlib.util
import logging
from math import pi
from typing import Optional

import numpy as np

from ..models.sample import SampleBatch
from .halton import halton_sequence
from .validator import UnsupportedExecutionEnvironment, validate_sample_count

LOGGER = logging.getLogger(__name__)

GRID_BACKENDS = ("cpu", "cuda")


def _generator(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def _inside_quarter_circle(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    return (x * x + y * y < 1.0).astype(float)


def quarter(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """Uniform rejection sampling on the unit square."""
    count = validate_sample_count(count)
    xy = np.asarray(_generator(rng).random((count, 2)), dtype=float).reshape(count, 2)
    values = _inside_quarter_circle(xy[:, 0], xy[:, 1])
    return SampleBatch(values=values, points=xy)


def quasi(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """Halton points in bases 2 and 3 for indices ``offset + 1 .. offset + count``."""
    count = validate_sample_count(count)
    offset = validate_sample_count(offset, name="offset")
    x = halton_sequence(offset + 1, count, 2)
    y = halton_sequence(offset + 1, count, 3)
    return SampleBatch(values=_inside_quarter_circle(x, y), points=np.column_stack([x, y]))


def integral(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """Direct quadrature of ``4 * sqrt(1 - x^2)`` with uniform ``x``; no points."""
    count = validate_sample_count(count)
    x = np.asarray(_generator(rng).random(count), dtype=float).reshape(count)
    return SampleBatch(values=4.0 * np.sqrt(1.0 - x * x), points=None)


def buffon(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """
    Buffon's needle with unit needle length and unit line spacing.

    Points are ``(d, theta)`` rather than Cartesian coordinates: ``d`` is the
    distance from the needle centre to the nearest line and ``theta`` its angle.
    """
    count = validate_sample_count(count)
    u = np.asarray(_generator(rng).random((count, 2)), dtype=float).reshape(count, 2)
    d = 0.5 * u[:, 0]
    theta = pi * u[:, 1]
    values = (d <= 0.5 * np.sin(theta)).astype(float)
    return SampleBatch(values=values, points=np.column_stack([d, theta]))


def polar(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """Uniform ``(r, theta)`` on ``[0, 1] x [0, pi/2]`` mapped to Cartesian points."""
    count = validate_sample_count(count)
    u = np.asarray(_generator(rng).random((count, 2)), dtype=float).reshape(count, 2)
    theta = 0.5 * pi * u[:, 0]
    r = u[:, 1]
    x = r * np.cos(theta)
    y = r * np.sin(theta)
    return SampleBatch(values=_inside_quarter_circle(x, y), points=np.column_stack([x, y]))


def importance(count: int, *, offset: int = 0, rng: Optional[np.random.Generator] = None) -> SampleBatch:
    """
    Importance sampling of ``4 * sqrt(1 - x^2)`` on ``[0, 1]``.

    ``x = sin(pi * u / 2)`` has density ``2 / (pi * sqrt(1 - x^2))``, so the
    weighted value ``2 * pi * (1 - x^2)`` has mean pi.
    """
    count = validate_sample_count(count)
    u = np.asarray(_generator(rng).random(count), dtype=float).reshape(count)
    x = np.sin(0.5 * pi * u)
    values = 2.0 * pi * (1.0 - x * x)
    return SampleBatch(values=values, points=np.column_stack([x, np.zeros(count)]))


def accelerator_available() -> bool:
    """Return ``True`` when torch is importable and reports a CUDA device."""
    if importlib.util.find_spec("torch") is None:
        return False
    import torch  # type: ignore

    return bool(torch.cuda.is_available())


def ensure_grid_backend(backend: str) -> None:
    """Fail fast when the requested grid backend cannot run here."""
    if backend == "cpu":
        return
    if backend not in GRID_BACKENDS:
        raise UnsupportedExecutionEnvironment(
            f"Unknown grid backend {backend!r}; expected one of {', '.join(GRID_BACKENDS)}"
        )
    if not accelerator_available():
        raise UnsupportedExecutionEnvironment(
            "The gpuGrid strategy was configured for the 'cuda' backend but no CUDA device "
            "is available (install torch with CUDA support or use MONTEPI_GRID_BACKEND=cpu)."
        )


def _grid_cells_cpu(side: int, offset: int, count: int) -> SampleBatch:
    cells = np.arange(offset, offset + count, dtype=np.int64)
    x = ((cells % side).astype(float) + 0.5) / side
    y = ((cells // side).astype(float) + 0.5) / side
    return SampleBatch(values=_inside_quarter_circle(x, y), points=np.column_stack([x, y]))


def _grid_cells_cuda(side: int, offset: int, count: int) -> SampleBatch:
    import torch  # type: ignore

    cells = torch.arange(offset, offset + count, dtype=torch.int64, device="cuda")
    x = ((cells % side).to(torch.float64) + 0.5) / side
    y = (torch.div(cells, side, rounding_mode="floor").to(torch.float64) + 0.5) / side
    values = (x * x + y * y < 1.0).to(torch.float64)
    points = torch.stack([x, y], dim=1)
    return SampleBatch(values=values.cpu().numpy(), points=points.cpu().numpy())


def gpu_grid(
    side: int,
    *,
    offset: int = 0,
    count: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    backend: str = "cpu",
) -> SampleBatch:
    """
    Deterministic quadrature over the cell centres of a ``side x side`` grid.

    Cell ``i`` (row-major, ``0 .. side**2 - 1``) has centre
    ``((i mod side + 0.5) / side, (i // side + 0.5) / side)``. ``offset`` and
    ``count`` select a contiguous slice of cells; by default the whole grid.
    """
    side = validate_sample_count(side, name="grid side")
    offset = validate_sample_count(offset, name="offset")
    cell_total = side * side
    if count is None:
        count = cell_total - offset
    count = validate_sample_count(count)
    if offset + count > cell_total:
        raise ValueError(f"Grid slice [{offset}, {offset + count}) exceeds {cell_total} cells")
    ensure_grid_backend(backend)
    if count == 0:
        return SampleBatch.empty()
    if backend == "cuda":
        LOGGER.debug("Evaluating %d grid cells on CUDA", count)
        return _grid_cells_cuda(side, offset, count)
    return _grid_cells_cpu(side, offset, count)


__all__ = [
    "GRID_BACKENDS",
    "accelerator_available",
    "buffon",
    "ensure_grid_backend",
    "gpu_grid",
    "importance",
    "integral",
    "polar",
    "quarter",
    "quasi",
]
