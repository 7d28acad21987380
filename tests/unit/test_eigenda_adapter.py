from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agentkit import EigenDAAdapter
from agentkit.adapters.base import DALoggingAdapter
from agentkit.clients.eigenda import EigenDAClient
from agentkit.core.errors import (
    AdapterNotReadyError,
    ConfirmationError,
    NotAcceptingRecordsError,
    NotInitializedError,
    SerializationError,
    ShutdownFlushError,
    UnsupportedOperationError,
)
from agentkit.core.settings import Settings
from agentkit.core.types import BatchStatus, DALogStatus, LogOptions
from agentkit.testing import InMemoryRemoteStore, validate_logging_adapter


def _adapter(store: InMemoryRemoteStore | None = None, **batching: Any) -> EigenDAAdapter:
    batching.setdefault("flush_interval_ms", 60_000)
    return EigenDAAdapter(store=store or InMemoryRemoteStore(), **batching)


def test_adapter_satisfies_logging_contract() -> None:
    adapter = _adapter()
    assert isinstance(adapter, DALoggingAdapter)
    assert validate_logging_adapter(adapter).valid


def test_config_and_store_are_exclusive() -> None:
    with pytest.raises(ValueError):
        EigenDAAdapter({"auth_token": "t"}, store=InMemoryRemoteStore())


def test_default_store_is_eigenda_client() -> None:
    adapter = EigenDAAdapter({"api_url": "https://da.example.com", "auth_token": "t"})
    assert isinstance(adapter.store, EigenDAClient)
    assert adapter.store.config.api_url == "https://da.example.com"


def test_from_settings_wires_batching_and_metrics() -> None:
    settings = Settings(
        batching={"max_buffer_size": 7, "flush_interval_ms": 250},
        core={"enable_metrics": True},
    )
    adapter = EigenDAAdapter.from_settings(settings, store=InMemoryRemoteStore())

    assert adapter.batching.max_buffer_size == 7
    assert adapter.batching.flush_interval_seconds == 0.25
    assert adapter.metrics.is_enabled


@pytest.mark.asyncio
async def test_log_before_initialize_raises_synchronously() -> None:
    adapter = _adapter()

    with pytest.raises(NotInitializedError):
        adapter.log("too early")
    with pytest.raises(NotInitializedError):
        adapter.info("too early")
    assert adapter.pending_count == 0


@pytest.mark.asyncio
async def test_initialize_is_idempotent_and_sets_identity() -> None:
    store = InMemoryRemoteStore(identity=bytes.fromhex("abcd"))
    adapter = _adapter(store)

    await adapter.initialize()
    await adapter.initialize()

    assert store.started
    assert adapter.is_initialized
    assert adapter.identifier == b"\xab\xcd"
    assert adapter.identifier_hex == "abcd"
    await adapter.shutdown()


@pytest.mark.asyncio
async def test_initialize_failure_raises_not_ready() -> None:
    store = InMemoryRemoteStore()
    store.identity_error = ConnectionError("rpc down")
    adapter = _adapter(store)

    with pytest.raises(AdapterNotReadyError) as exc_info:
        await adapter.initialize()
    assert isinstance(exc_info.value.cause, ConnectionError)
    assert not adapter.is_initialized


@pytest.mark.asyncio
async def test_initialize_rejects_empty_identity() -> None:
    adapter = _adapter(InMemoryRemoteStore(identity=None))
    with pytest.raises(AdapterNotReadyError):
        await adapter.initialize()


@pytest.mark.asyncio
async def test_level_helpers_set_level_and_metadata() -> None:
    store = InMemoryRemoteStore()
    async with _adapter(store) as adapter:
        adapter.info("i")
        adapter.warn("w", {"k": 1})
        adapter.error("e")
        adapter.debug("d")
        assert adapter.pending_count == 4
        assert await adapter.flush() == 4

    records = store.records()
    assert [r["level"] for r in records] == ["info", "warn", "error", "debug"]
    assert records[1]["metadata"] == {"k": 1}


@pytest.mark.asyncio
async def test_log_accepts_options() -> None:
    store = InMemoryRemoteStore()
    async with _adapter(store) as adapter:
        future = adapter.log(
            {"step": 2}, LogOptions(level="error", tags=("agent",), metadata={"a": 1})
        )
        await adapter.flush()
        entry = await future

    assert entry.options == LogOptions(level="error", tags=("agent",), metadata={"a": 1})
    assert store.records()[0]["tags"] == ["agent"]


@pytest.mark.asyncio
async def test_log_rejects_bad_input_synchronously() -> None:
    async with _adapter() as adapter:
        with pytest.raises(ValueError):
            adapter.log("x", level="fatal")
        with pytest.raises(SerializationError):
            adapter.log(object())
        assert adapter.pending_count == 0


@pytest.mark.asyncio
async def test_log_after_shutdown_is_rejected() -> None:
    store = InMemoryRemoteStore()
    adapter = _adapter(store)
    await adapter.initialize()
    await adapter.shutdown()
    await adapter.shutdown()

    assert store.stopped
    with pytest.raises(NotAcceptingRecordsError):
        adapter.info("late")
    with pytest.raises(AdapterNotReadyError):
        await adapter.initialize()


@pytest.mark.asyncio
async def test_store_calls_after_shutdown_are_rejected() -> None:
    store = InMemoryRemoteStore()
    async with _adapter(store) as adapter:
        result = await adapter.post("kept")

    with pytest.raises(NotAcceptingRecordsError):
        await adapter.post("late")
    with pytest.raises(NotInitializedError, match="shut down"):
        await adapter.get(result.job_id)
    with pytest.raises(NotInitializedError, match="shut down"):
        await adapter.get_log_entry(result.job_id)
    with pytest.raises(NotInitializedError, match="shut down"):
        await adapter.check_availability(
            DALogStatus(type="memory", data={"handle": result.job_id})
        )
    with pytest.raises(NotInitializedError, match="shut down"):
        await adapter.get_balance()
    assert len(store.attempts) == 1
    assert store.status_checks == 0


@pytest.mark.asyncio
async def test_submit_failure_never_surfaces_from_log() -> None:
    store = InMemoryRemoteStore()
    store.fail_next(1)
    async with _adapter(store) as adapter:
        future = adapter.info("y")
        assert await adapter.flush() == 0
        assert not future.done()
        assert await adapter.flush() == 1
        entry = await future

    assert entry.id == "mem-1"
    assert len(store.attempts) == 2


@pytest.mark.asyncio
async def test_shutdown_raises_when_final_flush_fails() -> None:
    store = InMemoryRemoteStore()
    adapter = _adapter(store)
    await adapter.initialize()
    future = adapter.info("lost")
    store.fail_always = True

    with pytest.raises(ShutdownFlushError) as exc_info:
        await adapter.shutdown()

    assert [r.content for r in exc_info.value.undelivered] == ["lost"]
    assert store.stopped
    with pytest.raises(ShutdownFlushError):
        await future


@pytest.mark.asyncio
async def test_check_availability() -> None:
    store = InMemoryRemoteStore(initial_status=BatchStatus.PENDING)
    async with _adapter(store) as adapter:
        future = adapter.info("a")
        await adapter.flush()
        entry = await future

        assert await adapter.check_availability(entry.status) is False
        store.set_status(entry.id, BatchStatus.CONFIRMED)
        assert await adapter.check_availability(entry.status) is True

        foreign = DALogStatus(type="opacity", data={"handle": entry.id})
        assert await adapter.check_availability(foreign) is False
        missing = DALogStatus(type="memory", data={})
        assert await adapter.check_availability(missing) is False


@pytest.mark.asyncio
async def test_check_availability_contains_errors(
    diagnostics_capture: list[dict[str, Any]],
) -> None:
    store = InMemoryRemoteStore()
    store.status_error = ConnectionError("status down")
    async with _adapter(store) as adapter:
        status = DALogStatus(type="memory", data={"handle": "mem-9"})
        assert await adapter.check_availability(status) is False

    assert any(d["component"] == "eigenda-adapter" for d in diagnostics_capture)


@pytest.mark.asyncio
async def test_get_log_entry_reads_store_directly() -> None:
    store = InMemoryRemoteStore()
    adapter = _adapter(store)
    with pytest.raises(NotInitializedError):
        await adapter.get_log_entry("mem-1")

    async with adapter:
        adapter.info("a")
        adapter.info("b")
        await adapter.flush()

        entry = await adapter.get_log_entry("mem-1")
        assert entry is not None
        assert [r["content"] for r in entry.content] == ["a", "b"]
        assert entry.status == DALogStatus(
            type="memory", data={"handle": "mem-1"}, timestamp=entry.timestamp
        )
        assert await adapter.get_log_entry("missing") is None


@pytest.mark.asyncio
async def test_get_log_entry_returns_none_for_corrupt_payload(
    diagnostics_capture: list[dict[str, Any]],
) -> None:
    store = InMemoryRemoteStore()
    store.payloads["bad"] = b"not json"
    async with _adapter(store) as adapter:
        assert await adapter.get_log_entry("bad") is None

    assert diagnostics_capture[-1]["message"] == "error retrieving log entry"


@pytest.mark.asyncio
async def test_post_and_get_bypass_buffer() -> None:
    store = InMemoryRemoteStore()
    async with _adapter(store) as adapter:
        result = await adapter.post({"chat": ["hi"]}, tags=["history"])

        assert adapter.pending_count == 0
        assert await adapter.get(result.job_id) == {"chat": ["hi"]}
        assert await adapter.get("unknown") is None
        entry = await adapter.get_log_entry(result.job_id)

    assert entry is not None
    assert entry.content == {"chat": ["hi"]}
    assert entry.options is not None and entry.options.tags == ("history",)


@pytest.mark.asyncio
async def test_post_initializes_lazily() -> None:
    store = InMemoryRemoteStore()
    adapter = _adapter(store)

    await adapter.post("hello")

    assert adapter.is_initialized
    await adapter.shutdown()


@pytest.mark.asyncio
async def test_post_wait_for_confirmation() -> None:
    store = InMemoryRemoteStore(initial_status=BatchStatus.FAILED)
    async with _adapter(
        store,
        confirmation_initial_delay_seconds=0,
        confirmation_poll_interval_seconds=0,
        confirmation_max_checks=2,
    ) as adapter:
        with pytest.raises(ConfirmationError):
            await adapter.post("x", wait_for_confirmation=True)

        store.initial_status = BatchStatus.CONFIRMED
        result = await adapter.post("y", wait_for_confirmation=True)
        assert result.content == "y"


@pytest.mark.asyncio
async def test_get_balance_requires_credit_tracking_store() -> None:
    adapter = _adapter()
    with pytest.raises(NotInitializedError):
        await adapter.get_balance()
    async with adapter:
        with pytest.raises(UnsupportedOperationError, match="does not track credits"):
            await adapter.get_balance()


@pytest.mark.asyncio
async def test_query_logs_is_unsupported() -> None:
    async with _adapter() as adapter:
        assert await adapter.query_logs(level="info") == []


@pytest.mark.asyncio
async def test_instances_do_not_share_buffers() -> None:
    store_a, store_b = InMemoryRemoteStore(), InMemoryRemoteStore()
    async with _adapter(store_a) as a, _adapter(store_b) as b:
        a.info("only-a")
        await asyncio.sleep(0)
        assert b.pending_count == 0
        assert a.pending_count == 1

    assert [r["content"] for r in store_a.records()] == ["only-a"]
    assert store_b.submitted == []
