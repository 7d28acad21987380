"""
Flush scheduling, submission and completion routing.

A ``FlushController`` moves records from a ``Batcher`` to a ``RemoteStore``:

- A recurring timer flushes every ``flush_interval_ms``.
- Reaching ``max_buffer_size`` seals the full buffer into a batch on the
  controller's submission queue before ``add()`` returns, and requests an
  immediate flush. The pending buffer therefore never holds more than
  ``max_buffer_size`` records.
- Only one flush runs at a time. A flush requested while another is in
  progress is coalesced into it (the running flush keeps draining the
  submission queue, then the buffer, until both are empty), never queued
  behind it.
- A failed or timed-out submit puts its records back ahead of everything
  logged since. They are retried on the next timer flush; threshold
  requests are ignored for one interval after a failure, but still seal
  full buffers.
- Completions resolve after the submit covering their record returned
  successfully, or after confirmation when ``wait_for_confirmation`` is set.

Known limitation: with a permanently failing store and no
``max_flush_attempts``, completions stay pending until ``shutdown()``
reports the records as undelivered.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Sequence

from ..metrics.metrics import MetricsCollector
from . import diagnostics
from .batcher import Batcher
from .errors import ConfirmationError, ShutdownFlushError, SubmissionError
from .records import BatchResult, LogRecord
from .serialization import encode_batch
from .settings import BatchingSettings
from .store import RemoteStore
from .types import BatchStatus, DALogEntry, DALogStatus

DeadLetterHandler = Callable[[Sequence[LogRecord], SubmissionError], None]


def coerce_status(value: BatchStatus | str | None) -> BatchStatus | None:
    if value is None or isinstance(value, BatchStatus):
        return value
    try:
        return BatchStatus(str(value).lower())
    except ValueError:
        return None


class FlushController:
    """Owns the flush timer for one adapter instance."""

    def __init__(
        self,
        *,
        batcher: Batcher,
        store: RemoteStore,
        config: BatchingSettings | None = None,
        metrics: MetricsCollector | None = None,
        dead_letter: DeadLetterHandler | None = None,
    ) -> None:
        self._batcher = batcher
        self._store = store
        self._config = config or BatchingSettings()
        self._metrics = metrics
        self._dead_letter = dead_letter
        self._lock = asyncio.Lock()
        self._timer_task: asyncio.Task[None] | None = None
        self._flush_task: asyncio.Task[int] | None = None
        self._confirmation_tasks: set[asyncio.Task[None]] = set()
        # Sealed batches awaiting submit; always older than the buffer contents
        self._queue: deque[list[LogRecord]] = deque()
        self._attempts: dict[str, int] = {}
        self._last_failure_at: float | None = None
        self._stopping = False
        self._stopped = False
        batcher.set_threshold_callback(self.request_flush)

    @property
    def store_name(self) -> str:
        return getattr(self._store, "name", type(self._store).__name__)

    @property
    def is_flushing(self) -> bool:
        return self._lock.locked()

    @property
    def queued_count(self) -> int:
        """Records sealed into batches that have not been submitted yet."""
        return sum(len(chunk) for chunk in self._queue)

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Start the recurring timer; a no-op if already running or stopped."""
        if self._stopping or self.is_running:
            return
        self._timer_task = asyncio.get_running_loop().create_task(
            self._run_timer(), name="agentkit-flush-timer"
        )

    async def _run_timer(self) -> None:
        interval = self._config.flush_interval_seconds
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    # Shielded so cancelling the timer never interrupts a submit
                    await asyncio.shield(self.flush())
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # pragma: no cover
                    diagnostics.warn(
                        "flush",
                        "timer flush error",
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
        except asyncio.CancelledError:
            return

    def request_flush(self) -> None:
        """Threshold trigger: seal full buffers and schedule an immediate flush.

        Sealing happens even when the flush itself is skipped (one already
        running or scheduled, or a recent failure), so the buffer is back
        under ``max_buffer_size`` before ``add()`` returns.
        """
        if self._stopping:
            return
        while self._batcher.is_full():
            self._queue.append(self._batcher.drain(self._batcher.max_buffer_size))
        if self._lock.locked():
            return
        if self._flush_task is not None and not self._flush_task.done():
            return
        if self._in_retry_backoff():
            return
        self._flush_task = asyncio.get_running_loop().create_task(
            self.flush(), name="agentkit-threshold-flush"
        )

    def _in_retry_backoff(self) -> bool:
        if self._last_failure_at is None:
            return False
        elapsed = asyncio.get_running_loop().time() - self._last_failure_at
        return elapsed < self._config.flush_interval_seconds

    async def flush(self) -> int:
        """Run one flush cycle; returns the number of records submitted.

        Returns 0 immediately when another flush is already in progress.
        """
        if self._lock.locked():
            return 0
        async with self._lock:
            submitted = 0
            while True:
                chunk = self._next_chunk()
                if not chunk:
                    return submitted
                handle, error = await self._submit(chunk)
                if error is not None:
                    await self._on_failure(chunk, error)
                    return submitted
                assert handle is not None
                await self._on_submitted(chunk, handle)
                submitted += len(chunk)

    def _next_chunk(self) -> list[LogRecord]:
        if self._queue:
            return self._queue.popleft()
        return self._batcher.drain(self._batcher.max_buffer_size)

    def _requeue(self, chunk: list[LogRecord]) -> None:
        """Put a failed chunk back ahead of everything logged since."""
        if not chunk:
            return
        fits = len(chunk) + len(self._batcher) <= self._batcher.max_buffer_size
        if fits and not self._queue:
            self._batcher.requeue_front(chunk)
        else:
            self._queue.appendleft(chunk)

    async def _submit(
        self, chunk: list[LogRecord]
    ) -> tuple[str | None, SubmissionError | None]:
        payload = encode_batch(chunk, timestamp=time.time())
        timeout = self._config.submit_timeout_seconds
        start = time.perf_counter()
        try:
            handle = await asyncio.wait_for(self._store.submit(payload), timeout=timeout)
        except asyncio.CancelledError:
            self._requeue(chunk)
            raise
        except asyncio.TimeoutError as exc:
            return None, SubmissionError(f"Submit timed out after {timeout}s", cause=exc)
        except SubmissionError as exc:
            return None, exc
        except Exception as exc:
            return None, SubmissionError("Remote store rejected batch", cause=exc)
        if not handle:
            return None, SubmissionError("Remote store returned an empty handle")
        if self._metrics is not None:
            await self._metrics.record_batch_submitted(
                store=self.store_name,
                batch_size=len(chunk),
                latency_seconds=time.perf_counter() - start,
            )
        return handle, None

    async def _on_submitted(self, chunk: list[LogRecord], handle: str) -> None:
        for record in chunk:
            self._attempts.pop(record.id, None)
        self._last_failure_at = None
        batch = BatchResult(handle=handle, records=tuple(chunk))
        if self._config.wait_for_confirmation:
            task = asyncio.get_running_loop().create_task(
                self._await_confirmation(batch), name=f"agentkit-confirm-{handle}"
            )
            self._confirmation_tasks.add(task)
            task.add_done_callback(lambda t: self._on_confirmation_done(t, batch))
            return
        self._batcher.completions.resolve(chunk, lambda r: self.entry_for(r, batch))

    def _on_confirmation_done(self, task: asyncio.Task[None], batch: BatchResult) -> None:
        self._confirmation_tasks.discard(task)
        if task.cancelled():
            self._batcher.completions.fail(
                batch.records,
                ConfirmationError(f"Shut down before batch {batch.handle} was confirmed"),
            )

    async def _on_failure(self, chunk: list[LogRecord], error: SubmissionError) -> None:
        self._last_failure_at = asyncio.get_running_loop().time()
        limit = self._config.max_flush_attempts
        retry: list[LogRecord] = []
        dead: list[LogRecord] = []
        for record in chunk:
            attempts = self._attempts.get(record.id, 0) + 1
            if limit is not None and attempts >= limit:
                self._attempts.pop(record.id, None)
                dead.append(record)
            else:
                self._attempts[record.id] = attempts
                retry.append(record)
        self._requeue(retry)
        diagnostics.warn(
            "flush",
            "submit failed; records requeued for next flush",
            store=self.store_name,
            error_type=type(error.cause or error).__name__,
            error=str(error),
            batch_size=len(chunk),
            requeued=len(retry),
        )
        if self._metrics is not None:
            await self._metrics.record_submit_failure(
                store=self.store_name, requeued=len(retry)
            )
        if dead:
            await self._dead_letter_records(dead, error)

    async def _dead_letter_records(
        self, records: list[LogRecord], error: SubmissionError
    ) -> None:
        exc = SubmissionError(
            f"Dropped after {self._config.max_flush_attempts} failed flush attempts",
            cause=error,
        )
        diagnostics.warn(
            "flush",
            "records dead-lettered",
            store=self.store_name,
            count=len(records),
            error=str(error),
        )
        if self._metrics is not None:
            await self._metrics.record_dead_lettered(len(records))
        if self._dead_letter is not None:
            try:
                self._dead_letter(records, exc)
            except Exception as cb_exc:
                diagnostics.warn(
                    "flush", "dead-letter handler failed", error=str(cb_exc)
                )
        self._batcher.completions.fail(records, exc)

    async def poll_confirmation(self, handle: str) -> BatchStatus:
        """Poll ``get_status`` until the handle is confirmed or failed.

        Returns ``PENDING`` when the configured checks run out. Status errors
        count as a pending check.
        """
        cfg = self._config
        await asyncio.sleep(cfg.confirmation_initial_delay_seconds)
        for check in range(cfg.confirmation_max_checks):
            try:
                status = coerce_status(await self._store.get_status(handle))
            except Exception as exc:
                diagnostics.warn(
                    "flush",
                    "status check failed",
                    handle=handle,
                    error=str(exc),
                    _rate_limit_key=f"status:{handle}",
                )
                status = None
            if status is BatchStatus.CONFIRMED or status is BatchStatus.FAILED:
                return status
            if check < cfg.confirmation_max_checks - 1:
                await asyncio.sleep(cfg.confirmation_poll_interval_seconds)
        return BatchStatus.PENDING

    async def _await_confirmation(self, batch: BatchResult) -> None:
        status = await self.poll_confirmation(batch.handle)
        if status is BatchStatus.CONFIRMED:
            batch.status = BatchStatus.CONFIRMED
            self._batcher.completions.resolve(
                batch.records, lambda r: self.entry_for(r, batch)
            )
            return
        if status is BatchStatus.FAILED:
            batch.status = BatchStatus.FAILED
            exc = ConfirmationError(f"Batch {batch.handle} failed in the remote store")
        else:
            exc = ConfirmationError(
                f"Batch {batch.handle} not confirmed after "
                f"{self._config.confirmation_max_checks} checks"
            )
        self._batcher.completions.fail(batch.records, exc)

    def entry_for(self, record: LogRecord, batch: BatchResult) -> DALogEntry:
        return DALogEntry(
            id=batch.handle,
            content=record.content,
            timestamp=record.enqueued_at,
            status=DALogStatus(
                type=self.store_name,
                data={"handle": batch.handle, "status": batch.status.value},
                timestamp=time.time(),
            ),
            options=record.options,
        )

    async def shutdown(self) -> None:
        """Stop the timer and make one final flush attempt.

        With ``wait_for_confirmation``, outstanding confirmation polls get
        ``confirmation_shutdown_grace_seconds`` to finish; the rest are
        cancelled and their completions fail with ``ConfirmationError``.

        Raises:
            ShutdownFlushError: If the final flush fails. The error lists the
                undelivered records and their completions fail with it.
        """
        if self._stopped:
            return
        self._stopping = True
        self._batcher.close()
        timer, self._timer_task = self._timer_task, None
        if timer is not None:
            timer.cancel()
            await asyncio.gather(timer, return_exceptions=True)
        async with self._lock:
            error = await self._final_flush()
        if self._flush_task is not None:
            await asyncio.gather(self._flush_task, return_exceptions=True)
            self._flush_task = None
        await self._settle_confirmations()
        self._stopped = True
        if error is not None:
            raise error

    async def _final_flush(self) -> ShutdownFlushError | None:
        while True:
            chunk = self._next_chunk()
            if not chunk:
                return None
            handle, error = await self._submit(chunk)
            if error is None:
                assert handle is not None
                await self._on_submitted(chunk, handle)
                continue
            undelivered = chunk + [r for queued in self._queue for r in queued]
            self._queue.clear()
            undelivered += self._batcher.drain()
            exc = ShutdownFlushError(
                f"Final flush failed; {len(undelivered)} record(s) were not delivered",
                undelivered=undelivered,
                cause=error,
            )
            diagnostics.warn(
                "flush",
                "final flush failed",
                store=self.store_name,
                undelivered=len(undelivered),
                error=str(error),
            )
            if self._metrics is not None:
                await self._metrics.record_submit_failure(
                    store=self.store_name, requeued=0
                )
            self._batcher.completions.fail(undelivered, exc)
            return exc

    async def _settle_confirmations(self) -> None:
        tasks = list(self._confirmation_tasks)
        if not tasks:
            return
        grace = self._config.confirmation_shutdown_grace_seconds
        pending = set(tasks)
        if grace > 0:
            _, pending = await asyncio.wait(tasks, timeout=grace)
        for task in pending:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
