"""Batched, incremental execution of a sampling strategy."""

from __future__ import annotations

import logging
import threading
from typing import Iterator, Optional

import numpy as np

from ..models.stream import BatchMessage, CompletionMessage, StreamMessage, StreamRequest
from .registry import StrategyDescriptor, resolve_strategy
from .validator import validate_batch_size, validate_sample_count

LOGGER = logging.getLogger(__name__)


def stream_batches(
    strategy: StrategyDescriptor,
    total: int,
    batch_size: int,
    *,
    rng: Optional[np.random.Generator] = None,
    backend: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[StreamMessage]:
    """
    Yield ``BatchMessage`` objects covering ``total`` requested samples, then a
    ``CompletionMessage``.

    Each batch asks the strategy for the next contiguous slice of the logical
    index space, so position-dependent strategies continue where the previous
    batch stopped. For grid strategies ``total`` is the grid side and the
    stream covers ``total**2`` cells. Control returns to the caller between
    batches; setting ``cancel_event`` stops production without a completion
    message.
    """
    total = validate_sample_count(total, name="total")
    batch_size = validate_batch_size(batch_size)
    strategy.ensure_supported(backend=backend)
    if rng is None:
        rng = np.random.default_rng()
    return _generate(strategy, total, batch_size, rng, backend, cancel_event)


def _generate(
    strategy: StrategyDescriptor,
    total: int,
    batch_size: int,
    rng: np.random.Generator,
    backend: Optional[str],
    cancel_event: Optional[threading.Event],
) -> Iterator[StreamMessage]:
    length = strategy.stream_length(total)
    produced = 0
    sequence = 0
    while produced < length:
        if cancel_event is not None and cancel_event.is_set():
            LOGGER.info("Stream for %s cancelled after %d/%d samples", strategy.name, produced, length)
            return
        size = min(batch_size, length - produced)
        batch = strategy.draw(size, offset=produced, requested=total, rng=rng, backend=backend)
        yield BatchMessage(sequence=sequence, offset=produced, values=batch.values, points=batch.points)
        produced += size
        sequence += 1
    if cancel_event is not None and cancel_event.is_set():
        return
    yield CompletionMessage(batches=sequence, samples=produced)


class BatchExecutor:
    """
    Single-use, cancellable producer for one streaming request.

    Iterating the executor drives :func:`stream_batches`; ``cancel()`` may be
    called from another thread and takes effect before the next batch.
    """

    def __init__(
        self,
        request: StreamRequest,
        *,
        rng: Optional[np.random.Generator] = None,
        backend: Optional[str] = None,
    ) -> None:
        self.request = request
        self.strategy = resolve_strategy(request.strategy_key)
        self._rng = rng
        self._backend = backend
        self._cancel = threading.Event()
        self._started = False

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        self._cancel.set()

    def __iter__(self) -> Iterator[StreamMessage]:
        if self._started:
            raise RuntimeError("BatchExecutor instances can only be iterated once.")
        self._started = True
        return stream_batches(
            self.strategy,
            self.request.total,
            self.request.batch_size,
            rng=self._rng,
            backend=self._backend,
            cancel_event=self._cancel,
        )


__all__ = ["BatchExecutor", "stream_batches"]
