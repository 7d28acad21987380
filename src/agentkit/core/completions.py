"""
One-shot completion futures keyed by record id.

A future is created when a record is enqueued and handed back to the
``log()`` caller. The flush controller resolves it, exactly once, after the
batch carrying the record was submitted (or confirmed). Futures of records
that go back to the buffer after a failed submit stay registered and
unresolved.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable

from .records import LogRecord
from .types import DALogEntry


class CompletionRegistry:
    def __init__(self) -> None:
        self._futures: dict[str, asyncio.Future[DALogEntry]] = {}

    def register(self, record_id: str) -> asyncio.Future[DALogEntry]:
        if record_id in self._futures:
            raise ValueError(f"Completion already registered for record {record_id}")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[DALogEntry] = loop.create_future()
        self._futures[record_id] = future
        return future

    def get(self, record_id: str) -> asyncio.Future[DALogEntry] | None:
        return self._futures.get(record_id)

    def resolve(
        self,
        records: Iterable[LogRecord],
        entry_for: Callable[[LogRecord], DALogEntry],
    ) -> int:
        """Resolve the futures of ``records``; returns how many were resolved."""
        resolved = 0
        for record in records:
            future = self._futures.pop(record.id, None)
            if future is None or future.done():
                continue
            future.set_result(entry_for(record))
            resolved += 1
        return resolved

    def fail(self, records: Iterable[LogRecord], exc: BaseException) -> int:
        failed = 0
        for record in records:
            future = self._futures.pop(record.id, None)
            if future is None or future.done():
                continue
            future.set_exception(exc)
            failed += 1
        return failed

    @property
    def pending(self) -> int:
        return sum(1 for f in self._futures.values() if not f.done())

    def __len__(self) -> int:
        return len(self._futures)
