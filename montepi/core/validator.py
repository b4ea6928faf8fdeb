"""Error taxonomy and input validation utilities."""

from __future__ import annotations

from numbers import Integral


class EngineError(Exception):
    """Base class for estimation engine errors."""


class InvalidSampleCount(EngineError, ValueError):
    """Raised for negative or non-integer sample counts (and batch sizes)."""


class UnsupportedExecutionEnvironment(EngineError, RuntimeError):
    """Raised when a strategy needs acceleration support that is not present."""


def _is_integer(value: object) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool)


def validate_sample_count(value: object, *, name: str = "sample count") -> int:
    """Ensure ``value`` is an integer >= 0 and return it as ``int``."""
    if not _is_integer(value):
        raise InvalidSampleCount(f"{name} must be an integer, got {value!r}")
    count = int(value)  # type: ignore[arg-type]
    if count < 0:
        raise InvalidSampleCount(f"{name} must be non-negative, got {count}")
    return count


def validate_batch_size(value: object) -> int:
    """Ensure the batch size is an integer >= 1."""
    size = validate_sample_count(value, name="batch size")
    if size < 1:
        raise InvalidSampleCount(f"batch size must be at least 1, got {size}")
    return size


__all__ = [
    "EngineError",
    "InvalidSampleCount",
    "UnsupportedExecutionEnvironment",
    "validate_batch_size",
    "validate_sample_count",
]
