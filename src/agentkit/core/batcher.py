"""
Pending buffer for records awaiting a flush.

The buffer is only touched from the event loop thread: ``add`` from
``log()`` callers, ``drain``/``requeue_front`` from the flush controller.
None of these await, so each runs atomically with respect to the others.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Sequence

from .completions import CompletionRegistry
from .errors import NotAcceptingRecordsError
from .records import LogRecord
from .types import DALogEntry


class Batcher:
    """Ordered buffer with a size threshold.

    ``on_threshold`` is called whenever an ``add`` leaves the buffer at or
    above ``max_buffer_size``. The flush controller uses it to seal the full
    buffer into a batch and schedule an immediate flush, so the buffer is
    back under the threshold before ``add`` returns.
    """

    def __init__(
        self,
        *,
        max_buffer_size: int,
        completions: CompletionRegistry | None = None,
        on_threshold: Callable[[], None] | None = None,
    ) -> None:
        if max_buffer_size <= 0:
            raise ValueError("max_buffer_size must be > 0")
        self._max_buffer_size = max_buffer_size
        self._buffer: deque[LogRecord] = deque()
        self._completions = completions or CompletionRegistry()
        self._on_threshold = on_threshold
        self._accepting = True

    @property
    def max_buffer_size(self) -> int:
        return self._max_buffer_size

    @property
    def completions(self) -> CompletionRegistry:
        return self._completions

    @property
    def accepting(self) -> bool:
        return self._accepting

    def set_threshold_callback(self, callback: Callable[[], None] | None) -> None:
        self._on_threshold = callback

    def add(self, record: LogRecord) -> asyncio.Future[DALogEntry]:
        """Append a record and return its completion.

        Raises:
            NotAcceptingRecordsError: Once ``close()`` has been called.
        """
        if not self._accepting:
            raise NotAcceptingRecordsError()
        future = self._completions.register(record.id)
        self._buffer.append(record)
        if self.is_full() and self._on_threshold is not None:
            self._on_threshold()
        return future

    def drain(self, limit: int | None = None) -> list[LogRecord]:
        """Remove and return up to ``limit`` records from the head (all if None)."""
        if limit is None or limit >= len(self._buffer):
            drained = list(self._buffer)
            self._buffer.clear()
            return drained
        return [self._buffer.popleft() for _ in range(limit)]

    def requeue_front(self, records: Sequence[LogRecord]) -> None:
        """Put records back at the head, keeping their relative order."""
        self._buffer.extendleft(reversed(records))

    def close(self) -> None:
        self._accepting = False

    def is_full(self) -> bool:
        return len(self._buffer) >= self._max_buffer_size

    def snapshot(self) -> list[LogRecord]:
        return list(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)
