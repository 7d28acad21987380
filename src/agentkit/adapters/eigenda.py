"""
EigenDA logging adapter with buffered, batched delivery.

``log()`` is synchronous: it validates and buffers the record and returns
an ``asyncio.Future`` that resolves to the stored ``DALogEntry`` once the
batch carrying the record has been submitted. It must be called from a
running event loop. Await the future to wait for delivery, or ignore it
for fire-and-forget logging:

    async with EigenDAAdapter({"auth_token": "..."}) as da:
        da.info("agent started")
        entry = await da.warn("low balance", {"balance": 0.01})
        assert await da.check_availability(entry.status) in (True, False)

Submission failures never surface from ``log()``; the records are retried
on the next scheduled flush. ``shutdown()`` raises ``ShutdownFlushError``
if its final flush fails. Without ``shutdown()``, persistent failures leave
completions pending indefinitely.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable, Mapping

from ..clients.eigenda import EigenDAClient, EigenDAClientConfig
from ..core import diagnostics
from ..core.batcher import Batcher
from ..core.completions import CompletionRegistry
from ..core.errors import (
    AdapterNotReadyError,
    ConfirmationError,
    NotAcceptingRecordsError,
    NotInitializedError,
    RetrievalError,
    UnsupportedOperationError,
)
from ..core.flush import DeadLetterHandler, FlushController, coerce_status
from ..core.records import build_record
from ..core.serialization import decode_payload, encode_post
from ..core.settings import BatchingSettings, Settings, parse_config
from ..core.store import RemoteStore
from ..core.types import (
    BatchStatus,
    DALogEntry,
    DALogStatus,
    LogOptions,
    PostResult,
    normalize_level,
)
from ..metrics.metrics import MetricsCollector

__all__ = ["EigenDAAdapter"]


class EigenDAAdapter:
    """Buffered DA logging adapter over a ``RemoteStore``.

    By default the store is an ``EigenDAClient`` built from ``config``;
    pass ``store=`` to use any other implementation. Keyword arguments not
    consumed here override ``BatchingSettings`` fields
    (``flush_interval_ms``, ``max_buffer_size``, ...).
    """

    def __init__(
        self,
        config: EigenDAClientConfig | Mapping[str, Any] | None = None,
        *,
        store: RemoteStore | None = None,
        batching: BatchingSettings | Mapping[str, Any] | None = None,
        metrics: MetricsCollector | None = None,
        dead_letter: DeadLetterHandler | None = None,
        **batching_overrides: Any,
    ) -> None:
        if store is None:
            store = EigenDAClient(config)
        elif config is not None:
            raise ValueError("Pass either config or store, not both")
        self._store = store
        self._batching = parse_config(BatchingSettings, batching, **batching_overrides)
        self._metrics = metrics or MetricsCollector(enabled=False)
        self._batcher = Batcher(
            max_buffer_size=self._batching.max_buffer_size,
            completions=CompletionRegistry(),
        )
        self._controller = FlushController(
            batcher=self._batcher,
            store=store,
            config=self._batching,
            metrics=self._metrics,
            dead_letter=dead_letter,
        )
        self._identity: Any = None
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._shutdown_started = False
        self._shutdown_done = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        store: RemoteStore | None = None,
        dead_letter: DeadLetterHandler | None = None,
    ) -> EigenDAAdapter:
        cfg = settings or Settings()
        return cls(
            None if store is not None else EigenDAClientConfig.from_settings(cfg.eigenda),
            store=store,
            batching=cfg.batching,
            metrics=MetricsCollector(enabled=cfg.core.enable_metrics),
            dead_letter=dead_letter,
        )

    @property
    def store(self) -> RemoteStore:
        return self._store

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def batching(self) -> BatchingSettings:
        return self._batching

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def pending_count(self) -> int:
        """Records in the pending buffer; never more than ``max_buffer_size``."""
        return len(self._batcher)

    @property
    def queued_count(self) -> int:
        """Records sealed into batches that are waiting to be submitted."""
        return self._controller.queued_count

    @property
    def identifier(self) -> Any:
        return self._identity

    @property
    def identifier_hex(self) -> str | None:
        if isinstance(self._identity, (bytes, bytearray)):
            return bytes(self._identity).hex()
        return None

    def _ensure_open(self) -> None:
        if self._shutdown_started:
            raise NotInitializedError("Adapter has been shut down")

    async def initialize(self) -> None:
        """Establish the remote identity and start the flush timer.

        Idempotent. Raises ``AdapterNotReadyError`` if the identity cannot be
        established.
        """
        async with self._init_lock:
            if self._initialized:
                return
            if self._shutdown_started:
                raise AdapterNotReadyError("Adapter has been shut down")
            try:
                await self._store.start()
                identity = await self._store.ensure_identity()
            except AdapterNotReadyError:
                raise
            except Exception as exc:
                raise AdapterNotReadyError(
                    "Failed to establish remote identity", cause=exc
                ) from exc
            if not identity:
                raise AdapterNotReadyError("Remote store returned no identity")
            self._identity = identity
            self._controller.start()
            self._initialized = True

    def log(
        self,
        data: Any,
        options: LogOptions | None = None,
        *,
        level: str | None = None,
        tags: Iterable[str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> asyncio.Future[DALogEntry]:
        """Buffer ``data`` and return its completion.

        Raises:
            NotInitializedError: Before ``initialize()``.
            NotAcceptingRecordsError: Once ``shutdown()`` has begun.
            SerializationError: If ``data`` or ``metadata`` is not JSON-serializable.
            ValueError: For an unknown level.
        """
        if not self._initialized:
            raise NotInitializedError()
        if self._shutdown_started:
            raise NotAcceptingRecordsError()
        if options is not None:
            level = level or options.level
            tags = tags if tags is not None else options.tags
            metadata = metadata if metadata is not None else options.metadata
        record = build_record(data, level=level, tags=tags, metadata=metadata)
        return self._batcher.add(record)

    # Convenience methods for different log levels
    def info(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> asyncio.Future[DALogEntry]:
        return self.log(message, level="info", metadata=metadata)

    def warn(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> asyncio.Future[DALogEntry]:
        return self.log(message, level="warn", metadata=metadata)

    def error(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> asyncio.Future[DALogEntry]:
        return self.log(message, level="error", metadata=metadata)

    def debug(
        self, message: str, metadata: Mapping[str, Any] | None = None
    ) -> asyncio.Future[DALogEntry]:
        return self.log(message, level="debug", metadata=metadata)

    async def flush(self) -> int:
        """Flush now; returns the number of records submitted."""
        return await self._controller.flush()

    async def check_availability(self, status: DALogStatus) -> bool:
        """Poll the store once; True only for a confirmed batch of this store."""
        self._ensure_open()
        if status.type != self._controller.store_name:
            return False
        handle = status.handle
        if handle is None:
            return False
        try:
            result = coerce_status(await self._store.get_status(handle))
        except Exception as exc:
            diagnostics.warn(
                "eigenda-adapter",
                "error checking data availability",
                handle=handle,
                error=str(exc),
            )
            return False
        return result is BatchStatus.CONFIRMED

    async def get_log_entry(self, id: str) -> DALogEntry | None:
        """Look up a stored batch or post by handle, bypassing the buffer."""
        if not self._initialized:
            raise NotInitializedError()
        self._ensure_open()
        try:
            raw = await self._store.retrieve(id)
            if raw is None:
                return None
            parsed = decode_payload(raw)
            timestamp = float(parsed.get("timestamp") or 0.0)
            return DALogEntry(
                id=id,
                content=parsed.get("data"),
                timestamp=timestamp,
                status=DALogStatus(
                    type=self._controller.store_name,
                    data={"handle": id},
                    timestamp=timestamp,
                ),
                options=LogOptions(
                    level=normalize_level(parsed.get("level")),
                    tags=tuple(parsed.get("tags") or ()),
                    metadata=dict(parsed.get("metadata") or {}),
                ),
            )
        except Exception as exc:
            err = exc if isinstance(exc, RetrievalError) else RetrievalError(
                f"Failed to retrieve log entry {id}", cause=exc
            )
            diagnostics.warn(
                "eigenda-adapter", "error retrieving log entry", id=id, error=str(err)
            )
            return None

    async def post(
        self,
        data: Any,
        *,
        wait_for_confirmation: bool = False,
        tags: Iterable[str] | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> PostResult:
        """Upload ``data`` directly, bypassing the buffer.

        Raises:
            ConfirmationError: With ``wait_for_confirmation`` when the upload
                fails or is not confirmed in time.
        """
        if self._shutdown_started:
            raise NotAcceptingRecordsError()
        if not self._initialized:
            await self.initialize()
        payload = encode_post(
            data,
            timestamp=time.time(),
            metadata=metadata,
            tags=list(tags or ()),
        )
        job_id = await self._store.submit(payload)
        if wait_for_confirmation:
            status = await self._controller.poll_confirmation(job_id)
            if status is not BatchStatus.CONFIRMED:
                raise ConfirmationError(f"Job {job_id} ended as {status.value}")
        return PostResult(job_id=job_id, content=data, timestamp=time.time())

    async def get(self, job_id: str) -> Any | None:
        """Return the ``data`` of a stored payload, or None."""
        self._ensure_open()
        try:
            raw = await self._store.retrieve(job_id)
            if raw is None:
                return None
            return decode_payload(raw).get("data")
        except Exception as exc:
            diagnostics.warn(
                "eigenda-adapter", "error retrieving data", job_id=job_id, error=str(exc)
            )
            return None

    async def get_balance(self) -> float:
        if not self._initialized:
            raise NotInitializedError()
        self._ensure_open()
        get_balance = getattr(self._store, "get_balance", None)
        if get_balance is None:
            raise UnsupportedOperationError(
                f"{self._controller.store_name} store does not track credits"
            )
        return float(await get_balance(self._identity))

    async def query_logs(
        self,
        *,
        start_time: float | None = None,
        end_time: float | None = None,
        level: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> list[DALogEntry]:
        # The DA layer has no query API; an index would have to live elsewhere
        return []

    async def shutdown(self) -> None:
        """Force-flush pending records, stop the timer and release the store.

        Raises:
            ShutdownFlushError: If the final flush fails.
        """
        if self._shutdown_done:
            return
        self._shutdown_started = True
        try:
            await self._controller.shutdown()
        finally:
            self._shutdown_done = True
            if self._initialized:
                await self._store.stop()

    async def __aenter__(self) -> EigenDAAdapter:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.shutdown()
