"""
Unit tests for CLI functionality.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any
from unittest.mock import patch

import orjson
import pytest

from agentkit import EigenDAAdapter
from agentkit.cli.main import build_parser, cli_main, main
from agentkit.core.types import BatchStatus
from agentkit.testing import InMemoryRemoteStore


def _adapter(store: InMemoryRemoteStore) -> EigenDAAdapter:
    return EigenDAAdapter(store=store, flush_interval_ms=60_000)


class TestCLI:
    """Test CLI functionality."""

    async def test_log_command_prints_entry(self, capsys: pytest.CaptureFixture[str]) -> None:
        store = InMemoryRemoteStore()
        argv = ["log", "agent started", "--level", "warn", "--tag", "boot", "--metadata", '{"run": 1}']

        result = await main(argv, adapter=_adapter(store))

        assert result == 0
        out = orjson.loads(capsys.readouterr().out)
        assert out["id"] == "mem-1"
        assert out["status"] == {"handle": "mem-1", "status": "pending"}
        (record,) = store.records()
        assert (record["level"], record["tags"], record["metadata"]) == ("warn", ["boot"], {"run": 1})

    async def test_log_command_fails_when_upload_fails(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        store = InMemoryRemoteStore()
        store.fail_always = True

        result = await asyncio.wait_for(main(["log", "x"], adapter=_adapter(store)), timeout=2.0)

        assert result == 1
        assert "Final flush failed" in capsys.readouterr().err
        assert len(store.attempts) == 1
        assert store.stopped

    async def test_post_and_get_commands(self, capsys: pytest.CaptureFixture[str]) -> None:
        store = InMemoryRemoteStore()

        assert await main(["post", '{"step": 1}'], adapter=_adapter(store)) == 0
        job_id = orjson.loads(capsys.readouterr().out)["job_id"]

        assert await main(["get", job_id], adapter=_adapter(store)) == 0
        assert orjson.loads(capsys.readouterr().out) == {"step": 1}

    async def test_post_plain_text_is_sent_as_string(self) -> None:
        store = InMemoryRemoteStore()
        assert await main(["post", "hello world"], adapter=_adapter(store)) == 0
        assert await _adapter(store).get("mem-1") == "hello world"

    async def test_get_unknown_job_fails(self, capsys: pytest.CaptureFixture[str]) -> None:
        result = await main(["get", "nope"], adapter=_adapter(InMemoryRemoteStore()))

        assert result == 1
        assert "not found" in capsys.readouterr().err

    async def test_status_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        store = InMemoryRemoteStore()
        store.set_status("mem-7", BatchStatus.CONFIRMED)

        assert await main(["status", "mem-7"], adapter=_adapter(store)) == 0
        assert orjson.loads(capsys.readouterr().out)["status"] == "confirmed"

    async def test_main_exception_handling(self) -> None:
        store = InMemoryRemoteStore()
        store.identity_error = ConnectionError("rpc down")

        with patch("builtins.print") as mock_print:
            result = await main(["status", "x"], adapter=_adapter(store))

        assert result == 1
        message = mock_print.call_args.args[0]
        assert message.startswith("Error: Failed to establish remote identity")
        assert mock_print.call_args.kwargs == {"file": sys.stderr}

    async def test_invalid_metadata_is_reported(self, capsys: pytest.CaptureFixture[str]) -> None:
        argv = ["log", "x", "--metadata", "[1, 2]"]
        assert await main(argv, adapter=_adapter(InMemoryRemoteStore())) == 1
        assert "--metadata must be a JSON object" in capsys.readouterr().err

    def test_parser_rejects_unknown_level(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["log", "x", "--level", "fatal"])

    def test_cli_main_returns_exit_code(self) -> None:
        def _run(coro: Any) -> int:
            coro.close()
            return 0

        with patch("agentkit.cli.main.asyncio.run", side_effect=_run) as mock_run:
            assert cli_main() == 0
            mock_run.assert_called_once()
