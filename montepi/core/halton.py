"""Halton low-discrepancy sequence (radical inverse in a prime base)."""

from __future__ import annotations

import numpy as np


def halton(index: int, base: int) -> float:
    """
    Return the ``index``-th element of the van der Corput sequence in ``base``.

    The digits of ``index`` written in ``base`` are mirrored around the radix
    point, e.g. ``halton(1, 2) == 0.5`` and ``halton(3, 3) == 1/9``.
    """
    if base < 2:
        raise ValueError(f"Halton base must be >= 2, got {base}")
    if index < 0:
        raise ValueError(f"Halton index must be non-negative, got {index}")
    result = 0.0
    f = 1.0 / base
    i = index
    while i > 0:
        result += f * (i % base)
        i //= base
        f /= base
    return result


def halton_sequence(start: int, count: int, base: int) -> np.ndarray:
    """
    Vectorised ``halton`` for indices ``start .. start + count - 1``.

    Uses the same accumulation order as :func:`halton`, so elements are
    bit-identical to the scalar version.
    """
    if base < 2:
        raise ValueError(f"Halton base must be >= 2, got {base}")
    if start < 0:
        raise ValueError(f"Halton index must be non-negative, got {start}")
    indices = np.arange(start, start + count, dtype=np.int64)
    result = np.zeros(count, dtype=float)
    f = 1.0 / base
    while indices.size and indices.max() > 0:
        result += f * (indices % base)
        indices //= base
        f /= base
    return result


__all__ = ["halton", "halton_sequence"]
