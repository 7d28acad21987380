from __future__ import annotations

import pytest

from agentkit.core.completions import CompletionRegistry
from agentkit.core.records import build_record
from agentkit.core.types import DALogEntry, DALogStatus


def _entry(record) -> DALogEntry:
    return DALogEntry(
        id="h-1",
        content=record.content,
        timestamp=record.enqueued_at,
        status=DALogStatus(type="memory", data={"handle": "h-1"}),
    )


@pytest.mark.asyncio
async def test_resolve_sets_result_once() -> None:
    registry = CompletionRegistry()
    record = build_record("x")
    future = registry.register(record.id)

    assert registry.resolve([record], _entry) == 1
    assert registry.resolve([record], _entry) == 0
    assert (await future).content == "x"
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_duplicate_registration_is_rejected() -> None:
    registry = CompletionRegistry()
    registry.register("r1")
    with pytest.raises(ValueError):
        registry.register("r1")


@pytest.mark.asyncio
async def test_fail_propagates_exception() -> None:
    registry = CompletionRegistry()
    record = build_record("x")
    future = registry.register(record.id)

    assert registry.fail([record], RuntimeError("boom")) == 1
    with pytest.raises(RuntimeError, match="boom"):
        await future


@pytest.mark.asyncio
async def test_cancelled_future_is_skipped() -> None:
    registry = CompletionRegistry()
    record = build_record("x")
    future = registry.register(record.id)
    future.cancel()

    assert registry.resolve([record], _entry) == 0
    assert registry.get(record.id) is None
