"""Background producer/consumer handoff for streaming estimation runs."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Queue
from typing import Iterator, List, Optional

import numpy as np
import pandas as pd

from ..config import DEFAULT_CONVERGENCE_ROWS
from ..core.executor import BatchExecutor
from ..core.statistics import ConvergenceRecorder, OnlineStatistics
from ..models.stream import BatchMessage, CompletionMessage, StreamMessage, StreamRequest

LOGGER = logging.getLogger(__name__)


class SimulationRunner:
    """
    Run one :class:`BatchExecutor` at a time on a worker thread.

    The worker is the only producer and the caller of :meth:`poll` the only
    consumer; batches travel through a FIFO queue and are folded into
    :attr:`statistics` in generation order. Pausing stops consumption while
    the worker keeps buffering; starting a new run cancels the previous one.
    """

    def __init__(
        self,
        *,
        backend: Optional[str] = None,
        convergence_rows: Optional[int] = DEFAULT_CONVERGENCE_ROWS,
    ) -> None:
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="simulation-runner")
        self._backend = backend
        self._convergence_rows = convergence_rows
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._executor: Optional[BatchExecutor] = None
        self._queue: "Queue[StreamMessage]" = Queue()
        self._statistics: Optional[OnlineStatistics] = None
        self._recorder: Optional[ConvergenceRecorder] = None
        self._paused = False
        self._finished = False

    # ------------------------------------------------------------------ status
    @property
    def running(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    @property
    def finished(self) -> bool:
        """True once the completion message has been consumed."""
        with self._lock:
            return self._finished

    @property
    def statistics(self) -> Optional[OnlineStatistics]:
        with self._lock:
            return self._statistics

    @property
    def buffered(self) -> int:
        """Batches produced but not yet consumed."""
        return self._queue.qsize()

    # ------------------------------------------------------------------ control
    def start(self, request: StreamRequest, *, rng: Optional[np.random.Generator] = None) -> None:
        """Cancel any active run and start producing ``request`` in the background."""
        executor = BatchExecutor(request, rng=rng, backend=self._backend)
        executor.strategy.ensure_supported(backend=self._backend)
        with self._lock:
            self._cancel_locked()
            queue: "Queue[StreamMessage]" = Queue()
            self._queue = queue
            self._executor = executor
            self._statistics = OnlineStatistics(executor.strategy.scaling_rule)
            self._recorder = ConvergenceRecorder(
                executor.strategy.scaling_rule,
                executor.strategy.stream_length(request.total),
                self._convergence_rows,
            )
            self._paused = False
            self._finished = False
            self._future = self._pool.submit(self._produce, executor, queue)
        LOGGER.info(
            "Started background stream for %s (total=%d, batch_size=%d)",
            executor.strategy.name,
            request.total,
            request.batch_size,
        )

    @staticmethod
    def _produce(executor: BatchExecutor, queue: "Queue[StreamMessage]") -> None:
        for message in executor:
            queue.put(message)

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def resume(self) -> None:
        with self._lock:
            self._paused = False

    def cancel(self) -> None:
        """Stop production and discard the executor and any unconsumed batches."""
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._executor is not None:
            self._executor.cancel()
            LOGGER.info("Cancelled stream for %s", self._executor.strategy.name)
        self._executor = None
        self._future = None
        self._queue = Queue()

    # ------------------------------------------------------------------ consume
    def _is_current(self, future: Future, statistics: OnlineStatistics) -> bool:
        return self._future is future and self._statistics is statistics

    def poll(self) -> List[StreamMessage]:
        """
        Consume every buffered message in order and fold batches into the
        statistics. Returns ``[]`` while paused. A producer failure is raised
        once all batches emitted before it have been consumed.

        Consumption stops as soon as the run is cancelled or replaced, so a
        restart never mixes the old run's batches into the new one.
        """
        with self._lock:
            if self._paused or self._future is None or self._statistics is None:
                return []
            queue = self._queue
            future = self._future
            statistics = self._statistics
            recorder = self._recorder
        # Everything the producer emitted before finishing is already queued.
        producer_done = future.done()

        messages: List[StreamMessage] = []
        while True:
            with self._lock:
                if not self._is_current(future, statistics):
                    return messages
            try:
                message = queue.get_nowait()
            except Empty:
                break
            if isinstance(message, BatchMessage):
                rows = statistics.update(message.values)
                with self._lock:
                    recorder.add(rows)
            elif isinstance(message, CompletionMessage):
                with self._lock:
                    if self._is_current(future, statistics):
                        self._finished = True
            messages.append(message)

        if not messages and producer_done:
            error = future.exception()
            if error is not None:
                with self._lock:
                    if self._is_current(future, statistics):
                        self._future = None
                        self._executor = None
                raise error
        return messages

    def iter_messages(self, *, poll_interval: float = 0.01) -> Iterator[StreamMessage]:
        """Yield messages until the completion message arrives or the run is cancelled."""
        while True:
            with self._lock:
                active = self._future is not None
            if not active:
                return
            messages = self.poll()
            for message in messages:
                yield message
                if isinstance(message, CompletionMessage):
                    return
            if not messages:
                time.sleep(poll_interval)

    def convergence(self) -> pd.DataFrame:
        """Convergence rows for the consumed batches of the current run."""
        with self._lock:
            if self._recorder is None:
                return pd.DataFrame()
            return self._recorder.frame()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the producer has emitted everything (or failed)."""
        with self._lock:
            future = self._future
        if future is not None:
            future.exception(timeout=timeout)

    def exception(self) -> Optional[BaseException]:
        with self._lock:
            future = self._future
        if future is None or not future.done():
            return None
        return future.exception()

    # ------------------------------------------------------------------- cleanup
    def shutdown(self, wait: bool = False) -> None:
        self.cancel()
        self._pool.shutdown(wait=wait)


__all__ = ["SimulationRunner"]
